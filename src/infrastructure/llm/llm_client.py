from __future__ import annotations

import http.client
import json
import logging
import time
import urllib.error
import urllib.request
from typing import Any

from infrastructure.settings import Settings

logger = logging.getLogger(__name__)


class LLMClient:
    """
    Ollama /api/generate client used for document extraction.

    Never raises: a disabled client, a transport failure, or an Ollama error
    body all come back as "", and callers switch to their regex fallback.
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:11434",
        model: str = "llama3.1:8b",
        timeout_seconds: float = 60.0,
        temperature: float = 0.1,
        enabled: bool = True,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.temperature = temperature
        self.enabled = enabled

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMClient":
        return cls(
            base_url=settings.ollama_base_url,
            model=settings.ollama_model,
            timeout_seconds=settings.ollama_timeout_seconds,
            temperature=settings.ollama_temperature,
            enabled=settings.llm_enabled,
        )

    def complete(self, prompt: str, json_mode: bool = False) -> str:
        if not self.enabled:
            logger.debug("LLMClient disabled; skipping model=%s", self.model)
            return ""

        started = time.perf_counter()
        body = self._generate(self._payload(prompt, json_mode))
        elapsed = time.perf_counter() - started
        if body is None:
            return ""
        if body.get("error"):
            logger.warning("LLMClient model=%s returned error after %.2fs: %s", self.model, elapsed, body["error"])
            return ""

        text = body.get("response")
        if not isinstance(text, str):
            logger.warning("LLMClient model=%s response had no text field", self.model)
            return ""
        logger.info("LLMClient complete model=%s json=%s in %.2fs response_chars=%d", self.model, json_mode, elapsed, len(text))
        return text.strip()

    def _payload(self, prompt: str, json_mode: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": self.temperature},
        }
        if json_mode:
            payload["format"] = "json"
        return payload

    def _generate(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        req = urllib.request.Request(
            url=f"{self.base_url}/api/generate",
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        logger.info(
            "LLMClient request start model=%s prompt_chars=%d timeout=%.1fs",
            self.model, len(payload["prompt"]), self.timeout_seconds,
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                body = json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            # Ollama reports unknown models and bad requests as {"error": "..."}.
            try:
                return json.loads(exc.read().decode("utf-8"))
            except (ValueError, OSError):
                return {"error": f"HTTP {exc.code}"}
        except (http.client.HTTPException, OSError, ValueError) as exc:
            logger.warning("LLMClient request failed model=%s: %s", self.model, exc)
            return None
        return body if isinstance(body, dict) else None
