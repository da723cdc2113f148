"""Common ingestion data structures."""

from __future__ import annotations

from dataclasses import dataclass, field

from assistant_kb.models.entities import Chunk


@dataclass(slots=True)
class IngestResult:
    """Outcome of one successful ingestion run."""

    document_id: str
    text_length: int
    processed_at: int
    chunks: list[Chunk] = field(default_factory=list)

    @property
    def chunk_count(self) -> int:
        return len(self.chunks)

    def to_dict(self) -> dict[str, object]:
        return {
            "document_id": self.document_id,
            "chunks_processed": self.chunk_count,
            "text_length": self.text_length,
            "processed_at": self.processed_at,
        }


__all__ = ["IngestResult"]
