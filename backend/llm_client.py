from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol

import openai
import requests
from openai import OpenAI

from errors import TransportError

LOG = logging.getLogger("llm_client")


@dataclass(frozen=True)
class OracleReply:
    """Raw transport answer: HTTP status plus the undecoded body text."""
    status: int
    body: str


class Oracle(Protocol):
    name: str

    def complete(self, prompt: str) -> OracleReply: ...

    def candidate_text(self, data: Dict[str, Any]) -> Optional[str]: ...


class GeminiOracle:
    """Google Generative Language REST `generateContent`."""

    name = "gemini"

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash",
                 base_url: str = "https://generativelanguage.googleapis.com/v1",
                 timeout: float = 60.0, session: Optional[requests.Session] = None):
        if not api_key:
            raise RuntimeError("GEMINI_API_KEY must be set")
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def url(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def complete(self, prompt: str) -> OracleReply:
        LOG.info("[llm_client] calling Gemini endpoint: %s", self.url)
        try:
            r = self.session.post(
                self.url,
                headers={"Content-Type": "application/json", "x-goog-api-key": self.api_key},
                json={"contents": [{"parts": [{"text": prompt}]}]},
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise TransportError("Oracle request timed out", {"timeout": True}) from e
        except requests.RequestException as e:
            raise TransportError(f"Oracle unreachable: {e}") from e
        return OracleReply(status=r.status_code, body=r.text)

    def candidate_text(self, data: Dict[str, Any]) -> Optional[str]:
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return None
        return text.strip() if isinstance(text, str) else None


class OpenRouterOracle:
    """OpenAI-compatible chat completion (OpenRouter by default)."""

    name = "openrouter"

    def __init__(self, api_key: str, model: str,
                 base_url: str = "https://openrouter.ai/api/v1",
                 timeout: float = 60.0, client: Optional[OpenAI] = None):
        if client is None:
            if not api_key:
                raise RuntimeError("OPENROUTER_API_KEY or OPENAI_API_KEY must be set")
            # no automatic retries: a failed call surfaces immediately
            client = OpenAI(base_url=base_url, api_key=api_key, timeout=timeout, max_retries=0)
        self.client = client
        self.model = model

    def complete(self, prompt: str) -> OracleReply:
        LOG.info("[llm_client] calling OpenRouter model: %s", self.model)
        try:
            raw = self.client.chat.completions.with_raw_response.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
            )
        except openai.APITimeoutError as e:
            raise TransportError("Oracle request timed out", {"timeout": True}) from e
        except openai.APIConnectionError as e:
            raise TransportError(f"Oracle unreachable: {e}") from e
        except openai.APIStatusError as e:
            # error bodies are still relayed so the normalizer can classify them
            return OracleReply(status=e.status_code, body=e.response.text)
        return OracleReply(status=raw.status_code, body=raw.text)

    def candidate_text(self, data: Dict[str, Any]) -> Optional[str]:
        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return None
        return text.strip() if isinstance(text, str) else None


_oracles: Dict[str, Oracle] = {}


def build_oracle(cfg: Mapping[str, Any]) -> Oracle:
    """Build an oracle from a Flask-style config mapping."""
    provider = (cfg.get("ORACLE_PROVIDER") or "gemini").lower()
    timeout = cfg.get("ORACLE_TIMEOUT", 60.0)
    if provider == "openrouter":
        return OpenRouterOracle(
            api_key=cfg.get("OPENROUTER_API_KEY"),
            model=cfg.get("OPENROUTER_MODEL"),
            base_url=cfg.get("OPENROUTER_BASE_URL"),
            timeout=timeout,
        )
    if provider == "gemini":
        return GeminiOracle(
            api_key=cfg.get("GEMINI_API_KEY"),
            model=cfg.get("GEMINI_MODEL"),
            base_url=cfg.get("GEMINI_BASE_URL"),
            timeout=timeout,
        )
    raise RuntimeError(f"Unknown ORACLE_PROVIDER: {provider}")


def get_oracle(cfg: Mapping[str, Any]) -> Oracle:
    """Build the configured oracle once and reuse it."""
    provider = (cfg.get("ORACLE_PROVIDER") or "gemini").lower()
    if provider not in _oracles:
        _oracles[provider] = build_oracle(cfg)
    return _oracles[provider]
