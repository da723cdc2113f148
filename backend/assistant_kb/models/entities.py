"""Internal dataclasses representing persisted entities."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass


@dataclass(slots=True)
class Document:
    id: str
    owner_id: str
    file_name: str
    file_size: int | None
    storage_path: str | None
    processed_at: int | None
    created_at: int

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Document":
        return cls(
            id=row["id"],
            owner_id=row["owner_id"],
            file_name=row["file_name"],
            file_size=row["file_size"],
            storage_path=row["storage_path"],
            processed_at=row["processed_at"],
            created_at=row["created_at"],
        )


@dataclass(slots=True)
class Chunk:
    id: str
    document_id: str
    owner_id: str
    chunk_index: int
    content: str
    embedding: list[float]
    created_at: int


@dataclass(slots=True)
class SearchHit:
    chunk_id: str
    document_id: str
    chunk_index: int
    content: str
    similarity: float
