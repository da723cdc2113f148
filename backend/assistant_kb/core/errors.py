"""Error taxonomy for the ingestion and retrieval pipeline.

Every terminal failure carries the pipeline ``stage`` it happened in so callers
can decide between retrying ingestion and asking the user for another file.
Messages are safe to show to end users: they never contain provider
credentials or stack state.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for failures raised by the pipeline."""

    stage: str = "pipeline"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"stage": self.stage, "error": self.message}


class ExtractionError(PipelineError):
    """No extraction strategy produced usable text."""

    stage = "extraction"


class UnsupportedDocumentError(ExtractionError):
    """The uploaded file is not a PDF."""


class InsufficientTextError(PipelineError):
    """Extracted text failed the readability thresholds."""

    stage = "validation"


class ProviderError(PipelineError):
    """An external embedding or completion call failed."""

    stage = "provider"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StorageError(PipelineError):
    """Persisting chunks or documents failed."""

    stage = "storage"


class DimensionMismatchError(StorageError):
    """A vector does not match the store's fixed dimensionality."""


class DocumentNotFoundError(PipelineError):
    stage = "lookup"


__all__ = [
    "PipelineError",
    "ExtractionError",
    "UnsupportedDocumentError",
    "InsufficientTextError",
    "ProviderError",
    "StorageError",
    "DimensionMismatchError",
    "DocumentNotFoundError",
]
