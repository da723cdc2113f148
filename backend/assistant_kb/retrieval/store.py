"""Persistence for documents and embedded chunks."""

from __future__ import annotations

import sqlite3
from typing import Sequence

from assistant_kb.core.errors import DimensionMismatchError, DocumentNotFoundError, StorageError
from assistant_kb.core.logging import get_logger
from assistant_kb.db.sqlite import SQLiteDatabase, pack_vector
from assistant_kb.ingest.chunker import ChunkDraft
from assistant_kb.models.entities import Chunk, Document, SearchHit
from assistant_kb.utils.ids import new_id
from assistant_kb.utils.time import now_ms

logger = get_logger(__name__)

_DOCUMENT_COLUMNS = "id, owner_id, file_name, file_size, storage_path, processed_at, created_at"

_SEARCH_SQL = """
SELECT chunk_id, document_id, chunk_index, content, similarity
FROM (
  SELECT
    id AS chunk_id,
    document_id,
    chunk_index,
    content,
    1 - cosine_distance(embedding, ?) AS similarity
  FROM chunks
  WHERE owner_id = ?
)
WHERE similarity > ?
ORDER BY similarity DESC, chunk_id ASC
LIMIT ?
"""


class KnowledgeStore:
    """Documents and chunks scoped to an owning assistant."""

    def __init__(self, db: SQLiteDatabase, dim: int) -> None:
        self.db = db
        self.dim = dim

    # Documents --------------------------------------------------------

    def create_document(
        self,
        owner_id: str,
        file_name: str,
        file_size: int | None,
        storage_path: str | None,
    ) -> Document:
        document = Document(
            id=new_id("doc"),
            owner_id=owner_id,
            file_name=file_name,
            file_size=file_size,
            storage_path=storage_path,
            processed_at=None,
            created_at=now_ms(),
        )
        self.db.execute(
            f"INSERT INTO documents ({_DOCUMENT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
            [
                document.id,
                document.owner_id,
                document.file_name,
                document.file_size,
                document.storage_path,
                document.processed_at,
                document.created_at,
            ],
        )
        self.db.commit()
        return document

    def get_document(self, document_id: str) -> Document:
        row = self.db.execute(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?",
            [document_id],
        ).fetchone()
        if row is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return Document.from_row(row)

    def list_documents(self, owner_id: str) -> list[Document]:
        rows = self.db.query(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE owner_id = ? ORDER BY created_at, id",
            [owner_id],
        )
        return [Document.from_row(row) for row in rows]

    def document_names(self, owner_id: str) -> list[str]:
        return [document.file_name for document in self.list_documents(owner_id)]

    def mark_processed(self, document_id: str) -> int:
        processed_at = now_ms()
        self.db.execute("UPDATE documents SET processed_at = ? WHERE id = ?", [processed_at, document_id])
        self.db.commit()
        return processed_at

    def delete_document(self, owner_id: str, document_id: str) -> int:
        cursor = self.db.execute(
            "DELETE FROM documents WHERE id = ? AND owner_id = ?",
            [document_id, owner_id],
        )
        self.db.commit()
        return cursor.rowcount

    def delete_documents(self, owner_id: str) -> int:
        cursor = self.db.execute("DELETE FROM documents WHERE owner_id = ?", [owner_id])
        self.db.commit()
        return cursor.rowcount

    # Chunks -----------------------------------------------------------

    def replace_chunks(
        self,
        document: Document,
        drafts: Sequence[ChunkDraft],
        vectors: Sequence[Sequence[float]],
    ) -> list[Chunk]:
        """Atomically swap the document's chunks for ``drafts``.

        Either every chunk is written or none is; a failed write leaves the
        previous chunk set untouched.
        """
        if len(drafts) != len(vectors):
            raise StorageError(f"Got {len(vectors)} vectors for {len(drafts)} chunks")
        for vector in vectors:
            self._check_dim(vector)

        now = now_ms()
        chunks = [
            Chunk(
                id=new_id("chk"),
                document_id=document.id,
                owner_id=document.owner_id,
                chunk_index=draft.index,
                content=draft.text,
                embedding=list(vector),
                created_at=now,
            )
            for draft, vector in zip(drafts, vectors)
        ]
        try:
            with self.db.transaction() as cursor:
                cursor.execute("DELETE FROM chunks WHERE document_id = ?", [document.id])
                cursor.executemany(
                    """
                    INSERT INTO chunks (id, document_id, owner_id, chunk_index, content, embedding, dim, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            chunk.id,
                            chunk.document_id,
                            chunk.owner_id,
                            chunk.chunk_index,
                            chunk.content,
                            pack_vector(chunk.embedding),
                            len(chunk.embedding),
                            chunk.created_at,
                        )
                        for chunk in chunks
                    ],
                )
        except sqlite3.Error as exc:
            logger.exception("Failed to store chunks for %s", document.id)
            raise StorageError(f"Failed to store chunks: {exc}") from exc
        return chunks

    def list_chunks(self, document_id: str) -> list[tuple[int, str]]:
        rows = self.db.query(
            "SELECT chunk_index, content FROM chunks WHERE document_id = ? ORDER BY chunk_index",
            [document_id],
        )
        return [(row["chunk_index"], row["content"]) for row in rows]

    def count_chunks(self, owner_id: str, document_id: str | None = None) -> int:
        sql, params = _owner_scope("SELECT COUNT(*) AS count FROM chunks", owner_id, document_id)
        row = self.db.execute(sql, params).fetchone()
        return int(row["count"]) if row else 0

    def delete_chunks(self, owner_id: str, document_id: str | None = None) -> int:
        sql, params = _owner_scope("DELETE FROM chunks", owner_id, document_id)
        cursor = self.db.execute(sql, params)
        self.db.commit()
        return cursor.rowcount

    def search(
        self,
        query_vector: Sequence[float],
        owner_id: str,
        threshold: float,
        k: int,
    ) -> list[SearchHit]:
        """Return up to ``k`` chunks of ``owner_id`` with similarity above ``threshold``."""
        self._check_dim(query_vector)
        if k <= 0:
            return []
        rows = self.db.query(_SEARCH_SQL, [pack_vector(query_vector), owner_id, threshold, k])
        return [
            SearchHit(
                chunk_id=row["chunk_id"],
                document_id=row["document_id"],
                chunk_index=row["chunk_index"],
                content=row["content"],
                similarity=float(row["similarity"]),
            )
            for row in rows
        ]

    def _check_dim(self, vector: Sequence[float]) -> None:
        if len(vector) != self.dim:
            raise DimensionMismatchError(f"Vector has {len(vector)} dimensions, store expects {self.dim}")


def _owner_scope(prefix: str, owner_id: str, document_id: str | None) -> tuple[str, list[str]]:
    if document_id is None:
        return f"{prefix} WHERE owner_id = ?", [owner_id]
    return f"{prefix} WHERE owner_id = ? AND document_id = ?", [owner_id, document_id]


__all__ = ["KnowledgeStore"]
