"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

INGEST_DURATION = Histogram(
    "akb_ingest_duration_seconds",
    "Ingest pipeline duration",
    registry=REGISTRY,
)

INGEST_FAILURES = Counter(
    "akb_ingest_failures_total",
    "Ingest runs aborted, by pipeline stage",
    labelnames=("stage",),
    registry=REGISTRY,
)

CHUNKS_STORED = Counter(
    "akb_chunks_stored_total",
    "Chunks persisted by the ingest pipeline",
    registry=REGISTRY,
)

EMBEDDING_BATCHES = Counter(
    "akb_embedding_batches_total",
    "Embedding provider batch calls",
    labelnames=("status",),
    registry=REGISTRY,
)

SEARCH_LATENCY = Histogram(
    "akb_search_latency_seconds",
    "Latency of similarity searches",
    labelnames=("mode",),
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "INGEST_DURATION",
    "INGEST_FAILURES",
    "CHUNKS_STORED",
    "EMBEDDING_BATCHES",
    "SEARCH_LATENCY",
    "metrics_response",
]
