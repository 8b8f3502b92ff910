"""Ollama chat client used to ask a local model for JSON.

Only the pieces the classifier needs: one non-streaming /api/chat call
constrained to JSON, and model discovery via /api/tags.
"""

import json
import logging
import re
from typing import Any

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)

# Substrings that mark a model as tuned for instructions, best first.
INSTRUCT_HINTS = ("instruct", "chat", "qwen", "gemma")

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class OllamaResponse(BaseModel):
    """The parts of a non-streaming /api/chat reply we keep."""

    model: str
    message: dict
    done: bool
    total_duration: int = 0
    prompt_eval_count: int = 0
    eval_count: int = 0

    @property
    def content(self) -> str:
        return self.message.get("content", "")

    @property
    def seconds(self) -> float:
        return self.total_duration / 1e9


def _decode(content: str) -> Any:
    """Decode model output, tolerating a markdown code fence around it."""
    text = content.strip()
    match = _FENCE.match(text)
    if match:
        text = match.group(1)
    return json.loads(text)


class OllamaClient:
    """Async client for a local Ollama server.

    Usage::

        async with OllamaClient("http://localhost:11434") as ollama:
            data, raw = await ollama.generate_json(
                model="qwen2.5",
                system="You sort email.",
                prompt="Subject: ...",
                schema=ClassificationPayload.model_json_schema(),
            )
    """

    def __init__(self, base_url: str, *, default_keep_alive: str = "5m", timeout: float = 120.0) -> None:
        self._default_keep_alive = default_keep_alive
        self._client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)

    async def __aenter__(self) -> "OllamaClient":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def generate_json(
        self,
        model: str,
        system: str,
        prompt: str,
        *,
        schema: dict | None = None,
        temperature: float = 0.2,
        keep_alive: str | None = None,
    ) -> tuple[Any, OllamaResponse]:
        """Ask the model for a JSON value.

        With ``schema`` the output is constrained to that JSON schema;
        without one Ollama is only asked for valid JSON. The decoded value
        is returned untouched, callers validate it.

        Returns:
            Tuple of (decoded JSON value, raw OllamaResponse).

        Raises:
            httpx.HTTPError: On transport errors or a non-2xx response.
            json.JSONDecodeError: If the model output is not JSON.
        """
        response = await self._client.post(
            "/api/chat",
            json={
                "model": model,
                "messages": [
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                "format": schema if schema is not None else "json",
                "stream": False,
                "keep_alive": keep_alive or self._default_keep_alive,
                "options": {"temperature": temperature},
            },
        )
        response.raise_for_status()
        raw = OllamaResponse.model_validate(response.json())

        logger.debug(
            "%s answered in %.1fs (%d prompt / %d output tokens)",
            raw.model,
            raw.seconds,
            raw.prompt_eval_count,
            raw.eval_count,
        )
        return _decode(raw.content), raw

    async def list_models(self) -> list[dict]:
        """Models pulled on the server, as listed by /api/tags."""
        response = await self._client.get("/api/tags")
        response.raise_for_status()
        return response.json().get("models", [])

    async def pick_instruct_model(self) -> str | None:
        return pick_instruct_model(await self.list_models())


def pick_instruct_model(models: list[dict]) -> str | None:
    """Choose a model for classification.

    Walks INSTRUCT_HINTS in order and returns the first model whose name
    contains the hint; with no match, the first model listed. None when
    the server has no models.
    """
    names = [m["name"] for m in models]
    for hint in INSTRUCT_HINTS:
        for name in names:
            if hint in name.lower():
                return name
    return names[0] if names else None
