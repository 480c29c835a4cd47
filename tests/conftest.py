import io
import json
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import docx
import pytest

from app import create_app
from config import TestConfig
from errors import InterviewError
from llm_client import OracleReply
from storage import Question


def gemini_body(text: str) -> str:
    return json.dumps({"candidates": [{"content": {"parts": [{"text": text}]}}]})


def make_questions(n: int, prefix: str = "Q") -> List[Question]:
    return [Question(text=f"{prefix} question {i + 1}", category="Tech", difficulty="easy") for i in range(n)]


def docx_bytes(*paragraphs: str) -> bytes:
    doc = docx.Document()
    for p in paragraphs:
        doc.add_paragraph(p)
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


class FakeOracle:
    """Gemini-shaped oracle that replays canned replies."""

    name = "fake"

    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts: List[str] = []

    def complete(self, prompt: str) -> OracleReply:
        self.prompts.append(prompt)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    def candidate_text(self, data: Dict[str, Any]) -> Optional[str]:
        try:
            return data["candidates"][0]["content"]["parts"][0]["text"].strip()
        except (KeyError, IndexError, TypeError, AttributeError):
            return None


class FakeGateway:
    """Stands in for GatewayClient; each generate() pops the next response."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.queries = []

    @property
    def calls(self) -> int:
        return len(self.queries)

    def generate(self, query):
        self.queries.append(query)
        resp = self.responses.pop(0) if self.responses else []
        if isinstance(resp, InterviewError):
            raise resp
        return list(resp)


class FakeResponse:
    def __init__(self, status_code: int, body: bytes):
        self.status_code = status_code
        self.content = body
        self.text = body.decode("utf-8", errors="replace")

    def json(self):
        return json.loads(self.text)


class FlaskSession:
    """requests.Session look-alike that routes calls into a Flask test client."""

    def __init__(self, client):
        self.client = client
        self.calls = []

    def request(self, method, url, timeout=None, json=None, files=None):
        path = urlsplit(url).path
        self.calls.append((method, path))
        if files:
            data = {k: (io.BytesIO(v[1]), v[0], v[2]) for k, v in files.items()}
            resp = self.client.open(path, method=method, data=data, content_type="multipart/form-data")
        else:
            resp = self.client.open(path, method=method, json=json)
        return FakeResponse(resp.status_code, resp.get_data())


@pytest.fixture
def oracle():
    return FakeOracle(OracleReply(200, gemini_body(json.dumps([
        {"text": "Q1", "category": "C", "difficulty": "easy"},
    ]))))


@pytest.fixture
def app(monkeypatch, oracle):
    monkeypatch.delenv("ENV", raising=False)
    app = create_app(TestConfig)
    app.config["ORACLE"] = oracle
    return app


@pytest.fixture
def client(app):
    return app.test_client()
