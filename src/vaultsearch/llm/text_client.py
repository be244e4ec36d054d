"""Ollama-backed chat client used for query rewriting."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, List, Optional

from ollama import Client as OllamaClient
from ollama import ResponseError

from vaultsearch.config import settings

logger = logging.getLogger(__name__)


class LLMGenerationError(RuntimeError):
    """Raised when the text generation client cannot return an answer."""


@dataclass(frozen=True)
class LLMResponse:
    content: str
    model: str = ""


class TextLLMClient:
    """Thread-safe helper around the Ollama client for text-only models."""

    def __init__(
        self,
        host: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> None:
        self.host = host or settings.ollama_base
        self.model = model or settings.text_llm_model
        self.temperature = settings.rewrite_temperature if temperature is None else temperature
        self.max_tokens = settings.rewrite_max_tokens if max_tokens is None else max_tokens
        self._client: Optional[OllamaClient] = None
        self._lock = Lock()

    def invoke(self, prompt: str) -> LLMResponse:
        """Send one user prompt and return the model's reply."""

        messages: List[dict[str, str]] = [{"role": "user", "content": prompt}]

        options = {
            "temperature": self.temperature,
            "num_predict": max(1, self.max_tokens),
        }

        response: Any = None
        for attempt in range(2):
            client = self._get_client()
            try:
                response = client.chat(
                    model=self.model,
                    messages=messages,
                    options=options,
                    stream=False,
                )
                break
            except ResponseError as exc:
                status_code = getattr(exc, "status_code", None)
                logger.error(
                    "Text LLM request failed (status %s, attempt %s): %s",
                    status_code,
                    attempt + 1,
                    exc,
                )
                if attempt == 0 and status_code is not None and status_code >= 500:
                    self._reset_client()
                    time.sleep(0.5)
                    continue
                raise LLMGenerationError(str(exc)) from exc
            except Exception as exc:  # pragma: no cover - network dependency
                logger.error("Text LLM request failed (attempt %s): %s", attempt + 1, exc)
                raise LLMGenerationError(str(exc)) from exc

        if response is None:
            raise LLMGenerationError("text llm returned no response")

        message = response.get("message") if isinstance(response, dict) else getattr(response, "message", None)
        if not message:
            raise LLMGenerationError("text llm returned empty message")

        content = message.get("content") if isinstance(message, dict) else getattr(message, "content", None)
        if not content or not str(content).strip():
            raise LLMGenerationError("text llm returned empty content")

        return LLMResponse(content=str(content), model=self.model)

    def _get_client(self) -> OllamaClient:
        if self._client is not None:
            return self._client

        with self._lock:
            if self._client is None:
                self._client = OllamaClient(host=self.host)
                logger.debug("Initialized Ollama client for %s", self.host)
        return self._client

    def _reset_client(self) -> None:
        with self._lock:
            self._client = None
