# helpers.py
from typing import Any, Optional
import json

MAX_RESUME_CHARS = 10_000
SNIPPET_CHARS = 2000

def _truncate(text: Optional[str], limit: int = MAX_RESUME_CHARS) -> str:
    text = text or ""
    return text[:limit] if len(text) > limit else text

def _snippet(value: Any, limit: int = SNIPPET_CHARS) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        value = json.dumps(value, ensure_ascii=False, default=str)
    return value[:limit]
