"""Gemini capabilities used by the engine: embeddings and JSON classification.

The engine depends only on the two protocols below; ``GeminiEmbedder``
and ``GeminiClassifier`` are the production implementations built on the
google-genai SDK (which retries 429/5xx responses itself).  Callers wrap
every call in a timeout and fall back on any failure.
"""
from __future__ import annotations

import json
from typing import Protocol

import structlog
from google import genai
from google.genai import types
from pydantic import BaseModel

from event_conflict.engine.config import AIConfig

logger = structlog.get_logger()


class Embedder(Protocol):
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per input text, in order."""
        ...


class Classifier(Protocol):
    async def classify(
        self,
        prompt: str,
        *,
        system_instruction: str,
        response_schema: type[BaseModel],
    ) -> dict:
        """Return the model's JSON answer as a dict (unvalidated)."""
        ...


def create_client(api_key: str) -> genai.Client:
    """Create a Gemini API client.

    Args:
        api_key: Google AI Studio API key.

    Returns:
        Configured genai.Client instance.
    """
    return genai.Client(api_key=api_key)


class GeminiEmbedder:
    """Batch text embeddings via ``embed_content``."""

    def __init__(self, client: genai.Client, ai_config: AIConfig) -> None:
        self._client = client
        self._config = ai_config

    async def embed(self, texts: list[str]) -> list[list[float]]:
        response = await self._client.aio.models.embed_content(
            model=self._config.embedding_model,
            contents=texts,
        )
        embeddings = response.embeddings or []
        if len(embeddings) != len(texts):
            raise ValueError(
                f"Expected {len(texts)} embeddings, got {len(embeddings)}"
            )
        logger.debug("gemini_embed_complete", count=len(texts))
        return [list(e.values or []) for e in embeddings]


class GeminiClassifier:
    """Structured JSON generation via ``generate_content``."""

    def __init__(self, client: genai.Client, ai_config: AIConfig) -> None:
        self._client = client
        self._config = ai_config

    async def classify(
        self,
        prompt: str,
        *,
        system_instruction: str,
        response_schema: type[BaseModel],
    ) -> dict:
        response = await self._client.aio.models.generate_content(
            model=self._config.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                system_instruction=system_instruction,
                response_mime_type="application/json",
                response_schema=response_schema,
                temperature=self._config.temperature,
                max_output_tokens=self._config.max_output_tokens,
            ),
        )

        usage = response.usage_metadata
        logger.debug(
            "gemini_classify_complete",
            prompt_tokens=getattr(usage, "prompt_token_count", 0) or 0,
            completion_tokens=getattr(usage, "candidates_token_count", 0) or 0,
        )
        if not response.text:
            raise ValueError("Empty response from classification model")
        return json.loads(response.text)
