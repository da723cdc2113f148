"""Embedding utilities."""

from __future__ import annotations

import hashlib
import math
import re
import time
from dataclasses import dataclass
from typing import Callable, Protocol, Sequence

import requests

from assistant_kb.core.config import Settings
from assistant_kb.core.errors import DimensionMismatchError, ProviderError
from assistant_kb.core.logging import get_logger
from assistant_kb.core.metrics import EMBEDDING_BATCHES

logger = get_logger(__name__)

_TOKEN_RE = re.compile(r"\w+")


@dataclass(slots=True)
class EmbeddingBatch:
    vectors: list[list[float]]
    model: str
    dim: int


class EmbeddingProvider(Protocol):
    """Anything that turns a batch of strings into vectors, in order."""

    model: str

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        ...


class HashedEmbeddingProvider:
    """Lightweight hashed embedding model with deterministic output.

    Needs no network access, which makes it the backend for tests and local
    experiments. Texts sharing words get positive cosine similarity.
    """

    def __init__(self, model: str = "hashed", dim: int = 384) -> None:
        self.model = model
        self.dim = dim

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for text in texts:
            vector = [0.0] * self.dim
            for token in _tokenize(text):
                vector[_hash_token(token, self.dim)] += 1.0
            _normalize(vector)
            vectors.append(vector)
        return vectors


class OpenAIEmbeddingProvider:
    """Calls an OpenAI-compatible ``/embeddings`` endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        api_base: str = "https://api.openai.com/v1",
        timeout: float = 60.0,
        session: requests.Session | None = None,
    ) -> None:
        self.model = model
        self.url = f"{api_base.rstrip('/')}/embeddings"
        self.timeout = timeout
        self._api_key = api_key
        self._session = session or requests.Session()

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        try:
            resp = self._session.post(
                self.url,
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
                json={"model": self.model, "input": list(texts)},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ProviderError(f"Embeddings API request failed: {exc.__class__.__name__}") from exc
        if not resp.ok:
            raise ProviderError(f"Embeddings API error: {resp.text}", status_code=resp.status_code)
        try:
            data = resp.json().get("data") or []
            ordered = sorted(data, key=lambda item: item.get("index", 0))
            return [item["embedding"] for item in ordered]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise ProviderError("Embeddings API returned an unexpected payload") from exc


class EmbeddingClient:
    """Batches texts through a provider with a fixed delay between calls."""

    def __init__(
        self,
        provider: EmbeddingProvider,
        dim: int,
        batch_size: int = 5,
        batch_delay: float = 0.2,
        max_input_chars: int = 1800,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.provider = provider
        self.dim = dim
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.max_input_chars = max_input_chars
        self._sleep = sleep

    @property
    def model(self) -> str:
        return self.provider.model

    def embed(self, texts: Sequence[str]) -> EmbeddingBatch:
        """Embed ``texts`` in input order; any failing batch aborts the call."""
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            if start:
                self._sleep(self.batch_delay)
            batch = [self._truncate(text) for text in texts[start : start + self.batch_size]]
            try:
                result = self.provider.embed_batch(batch)
            except ProviderError:
                EMBEDDING_BATCHES.labels(status="error").inc()
                raise
            EMBEDDING_BATCHES.labels(status="ok").inc()
            if len(result) != len(batch):
                raise ProviderError(
                    f"Embeddings API returned {len(result)} vectors for {len(batch)} inputs"
                )
            for vector in result:
                if len(vector) != self.dim:
                    raise DimensionMismatchError(
                        f"Embedding has {len(vector)} dimensions, expected {self.dim}"
                    )
            vectors.extend([float(value) for value in vector] for vector in result)
        return EmbeddingBatch(vectors=vectors, model=self.model, dim=self.dim)

    def embed_query(self, text: str) -> list[float]:
        return self.embed([text]).vectors[0]

    def _truncate(self, text: str) -> str:
        if len(text) <= self.max_input_chars:
            return text
        logger.warning("Truncating embedding input from %s to %s characters", len(text), self.max_input_chars)
        return text[: self.max_input_chars]


def build_embedding_client(settings: Settings, sleep: Callable[[float], None] = time.sleep) -> EmbeddingClient:
    """Create the embedding client selected by ``settings.embedding_backend``."""
    provider: EmbeddingProvider
    if settings.embedding_backend == "hashed":
        provider = HashedEmbeddingProvider(model=settings.embedding_model, dim=settings.embedding_dim)
    else:
        if settings.openai_api_key is None:
            raise ProviderError("OpenAI API key not configured")
        provider = OpenAIEmbeddingProvider(
            api_key=settings.openai_api_key.get_secret_value(),
            model=settings.embedding_model,
            api_base=settings.api_base,
            timeout=settings.request_timeout,
        )
    return EmbeddingClient(
        provider,
        dim=settings.embedding_dim,
        batch_size=settings.embedding_batch_size,
        batch_delay=settings.embedding_batch_delay,
        max_input_chars=settings.embedding_max_input_chars,
        sleep=sleep,
    )


def _tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def _hash_token(token: str, dim: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    value = int.from_bytes(digest, "big")
    return value % dim


def _normalize(vector: list[float]) -> None:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return
    inv = 1.0 / norm
    for idx, value in enumerate(vector):
        vector[idx] = value * inv


__all__ = [
    "EmbeddingBatch",
    "EmbeddingProvider",
    "HashedEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "EmbeddingClient",
    "build_embedding_client",
]
