"""
Question generation relay: prompt the oracle, then salvage a JSON array of
questions from whatever free-form text it sends back.

Oracles routinely wrap the array in prose or code fences despite being told
not to, so parsing is tolerant: strict parse first, then the widest
`[ ... ]` span, then the first balanced top-level array. When none of
those yields questions the caller gets a single diagnosed fallback question
instead of an empty list.
"""

from __future__ import annotations
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from errors import (
    InterviewError,
    MalformedResponseError,
    TransportError,
    UpstreamError,
    ValidationError,
)
from helpers import _snippet
from llm_client import Oracle
from storage import DEFAULT_CATEGORY, normalize_difficulty

LOG = logging.getLogger("gateway")

QUESTIONS_PER_REQUEST = 5
FALLBACK_TEXT = "Failed to generate questions. Please try again."
ERROR_TEXT = "Error generating questions."

DEBUG_QUESTIONS = [
    {"text": "Debug Q: Tell me about yourself.", "category": "Behavioral", "difficulty": "easy"},
    {"text": "Debug Q: Explain a SQL join.", "category": "Technical", "difficulty": "medium"},
]

PROMPT_TEMPLATE = """
You are an interview question generator.
Read this resume and position and generate exactly {count} questions as JSON array only.
Each element must have:
{{
  "text": "question text",
  "category": "topic name",
  "difficulty": "easy | medium | hard"
}}

Resume:
{resume}

Position: {position}
Company: {company}
Preferred difficulty: {difficulty}

Return ONLY JSON. No explanations or text outside the JSON.
"""

_FENCE_RE = re.compile(r"^```[A-Za-z0-9_-]*\s*|\s*```$")


@dataclass
class GenerationResult:
    """Outcome of one relay call, already shaped for the wire."""

    questions: List[Any] = field(default_factory=list)
    status: int = 200
    error: Optional[InterviewError] = None
    diagnostic: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.diagnostic is None

    @property
    def is_fallback(self) -> bool:
        return self.error is None and self.diagnostic is not None

    def body(self) -> Any:
        if self.error is not None:
            return self.error.to_dict()
        return self.questions


def build_prompt(resume: str, position: str, company: Optional[str] = None,
                 difficulty: Optional[str] = None) -> str:
    # Fields are embedded verbatim; no prompt-injection escaping is attempted.
    return PROMPT_TEMPLATE.format(
        count=QUESTIONS_PER_REQUEST,
        resume=resume,
        position=position,
        company=company or "General",
        difficulty=difficulty or "easy",
    )


def _strip_code_fences(text: str) -> str:
    t = text.strip()
    if t.startswith("```") and t.endswith("```"):
        t = _FENCE_RE.sub("", t)
    return t.strip()


def _balanced_array(text: str) -> Optional[str]:
    """First top-level `[...]` whose brackets balance, ignoring brackets in strings."""
    start = text.find("[")
    while start != -1:
        depth, in_str, escaped = 0, False, False
        for i in range(start, len(text)):
            ch = text[i]
            if in_str:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_str = False
                continue
            if ch == '"':
                in_str = True
            elif ch == "[":
                depth += 1
            elif ch == "]":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        start = text.find("[", start + 1)
    return None


def _loads_list(candidate: Optional[str]) -> Optional[list]:
    if not candidate:
        return None
    try:
        data = json.loads(candidate)
    except (ValueError, TypeError):
        return None
    return data if isinstance(data, list) else None


def extract_question_array(text: Optional[str]) -> List[Any]:
    """Pull a JSON array out of free-form oracle text; [] when there is none."""
    if not text:
        return []
    t = _strip_code_fences(text)

    found = _loads_list(t)
    if found is not None:
        return found

    first, last = t.find("["), t.rfind("]")
    if first != -1 and last > first:
        found = _loads_list(t[first:last + 1])
        if found is not None:
            return found
        LOG.info("[gateway] widest bracket span did not parse, trying balanced scan")

    found = _loads_list(_balanced_array(t))
    return found or []


def fallback_question(difficulty: Optional[str], diagnostic: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "text": FALLBACK_TEXT,
        "category": DEFAULT_CATEGORY,
        "difficulty": normalize_difficulty(difficulty),
        "_diagnostic": diagnostic,
    }


def error_question(difficulty: Optional[str], error: str) -> Dict[str, Any]:
    """Fallback for failures nothing upstream anticipated; `_error` marks it for the client."""
    return {
        "text": ERROR_TEXT,
        "category": DEFAULT_CATEGORY,
        "difficulty": normalize_difficulty(difficulty),
        "_error": _snippet(error),
    }


def generate_questions(resume: Optional[str], position: Optional[str],
                       company: Optional[str], difficulty: Optional[str],
                       oracle: Oracle) -> GenerationResult:
    if not resume or not position:
        raise ValidationError("Missing required fields (resume or position)")

    prompt = build_prompt(resume, position, company, difficulty)
    try:
        reply = oracle.complete(prompt)
    except TransportError as e:
        LOG.error("[gateway] oracle transport failure: %s", e)
        status = 504 if e.details.get("timeout") else 502
        return GenerationResult(status=status, error=e)

    LOG.info("[gateway] oracle HTTP status: %s", reply.status)
    LOG.debug("[gateway] oracle raw response: %s", _snippet(reply.body))

    try:
        data = json.loads(reply.body)
    except ValueError as e:
        LOG.error("[gateway] failed to parse oracle response JSON: %s", e)
        return GenerationResult(status=502, error=MalformedResponseError(
            "Failed to parse oracle response JSON",
            {"httpStatus": reply.status, "rawResponseSnippet": _snippet(reply.body)},
        ))

    if isinstance(data, dict) and "error" in data and data["error"] is not None:
        LOG.error("[gateway] oracle returned error object: %s", data["error"])
        return GenerationResult(status=502, error=UpstreamError(
            "Oracle API error", {"details": data["error"], "httpStatus": reply.status},
        ))

    raw_text = oracle.candidate_text(data) if isinstance(data, dict) else None
    if not raw_text:
        LOG.warning("[gateway] no candidate text in oracle response: %s", _snippet(data))

    questions = extract_question_array(raw_text)
    if not questions:
        diagnostic = {
            "message": "No valid questions produced by the oracle. Returning fallback.",
            "httpStatus": reply.status,
            "rawText": _snippet(raw_text),
            "parsedBodySnippet": _snippet(data),
        }
        LOG.warning("[gateway] diagnostic: %s", diagnostic)
        return GenerationResult(
            questions=[fallback_question(difficulty, diagnostic)],
            diagnostic=diagnostic,
        )

    LOG.info("[gateway] returning %d questions", len(questions))
    return GenerationResult(questions=questions)
