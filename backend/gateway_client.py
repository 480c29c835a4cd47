from __future__ import annotations
import logging
from typing import List, Optional

import requests

from config import ClientConfig
from errors import MalformedResponseError, TransportError, error_from_body
from storage import GenerationQuery, Question

LOG = logging.getLogger("gateway_client")


class GatewayClient:
    """HTTP client for the generation gateway.

    Accepts every reply shape the gateway may produce: a bare array of
    questions, `{"questions": [...]}`, or an error object carrying `kind`.
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.base_url = (base_url or ClientConfig.GATEWAY_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else ClientConfig.GATEWAY_TIMEOUT
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            raise TransportError("Gateway request timed out", {"timeout": True}) from e
        except requests.RequestException as e:
            raise TransportError(f"Could not reach gateway: {e}") from e
        try:
            data = resp.json()
        except ValueError as e:
            LOG.error("[gateway_client] JSON parse error (HTTP %s): %s", resp.status_code, resp.text[:500])
            raise MalformedResponseError(
                "Invalid response format from backend.",
                {"httpStatus": resp.status_code},
            ) from e
        return resp.status_code, data

    @staticmethod
    def _questions(status: int, data) -> List[Question]:
        if isinstance(data, list):
            return [Question.from_dict(q) for q in data]
        if isinstance(data, dict):
            if isinstance(data.get("questions"), list):
                return [Question.from_dict(q) for q in data["questions"]]
            if data.get("error") or data.get("kind"):
                raise error_from_body(data, status)
        raise MalformedResponseError(
            "Unexpected response from server. Please check backend logs.",
            {"httpStatus": status},
        )

    def generate(self, query: GenerationQuery) -> List[Question]:
        LOG.info("[gateway_client] requesting questions position=%r company=%r difficulty=%r",
                 query.position, query.company, query.difficulty)
        status, data = self._request("POST", "/generate", json=query.to_payload())
        questions = self._questions(status, data)
        for q in questions:
            if q.is_fallback:
                LOG.warning("[gateway_client] gateway fallback: %s", q.diagnostic)
        return questions

    def debug_questions(self) -> List[Question]:
        status, data = self._request("GET", "/debug/questions")
        return self._questions(status, data)

    def extract(self, filename: str, data: bytes, content_type: Optional[str] = None) -> str:
        """Server-side text extraction, for clients without local parsers."""
        status, body = self._request(
            "POST", "/extract",
            files={"file": (filename, data, content_type or "application/octet-stream")},
        )
        if status >= 400 or not isinstance(body, dict) or "text" not in body:
            if isinstance(body, dict):
                raise error_from_body(body, status)
            raise MalformedResponseError("Unexpected extract response", {"httpStatus": status})
        return body["text"]
