"""Deletion of chunks, documents and stored files."""

from __future__ import annotations

from dataclasses import dataclass, field

from assistant_kb.core.errors import DocumentNotFoundError
from assistant_kb.core.logging import get_logger
from assistant_kb.db.files import FileStorage
from assistant_kb.retrieval.store import KnowledgeStore

logger = get_logger(__name__)


@dataclass(slots=True)
class PurgeResult:
    chunks: int


@dataclass(slots=True)
class ResetResult:
    chunks: int
    documents: int
    files: int
    removed_files: list[str] = field(default_factory=list)


class LifecycleManager:
    """Purge and reset operations for an assistant's knowledge base.

    The database is authoritative: rows are deleted even when removing the
    backing file fails, and such failures are only logged.
    """

    def __init__(self, store: KnowledgeStore, storage: FileStorage) -> None:
        self.store = store
        self.storage = storage

    def purge(self, owner_id: str, document_id: str | None = None) -> PurgeResult:
        deleted = self.store.delete_chunks(owner_id, document_id)
        logger.info(
            "Purged %s chunks for owner %s",
            deleted,
            owner_id,
            extra={"ctx_owner_id": owner_id, "ctx_document_id": document_id},
        )
        return PurgeResult(chunks=deleted)

    def reset(self, owner_id: str) -> ResetResult:
        paths = [doc.storage_path for doc in self.store.list_documents(owner_id) if doc.storage_path]
        removed = self._remove_files(paths)
        chunks = self.store.delete_chunks(owner_id)
        documents = self.store.delete_documents(owner_id)
        logger.info(
            "Reset knowledge for owner %s: %s chunks, %s documents, %s files",
            owner_id,
            chunks,
            documents,
            len(removed),
            extra={"ctx_owner_id": owner_id},
        )
        return ResetResult(chunks=chunks, documents=documents, files=len(removed), removed_files=removed)

    def delete_document(self, owner_id: str, document_id: str) -> int:
        """Delete one document, its file and (by cascade) its chunks."""
        document = self.store.get_document(document_id)
        if document.owner_id != owner_id:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        if document.storage_path:
            self._remove_files([document.storage_path])
        return self.store.delete_document(owner_id, document_id)

    def _remove_files(self, paths: list[str]) -> list[str]:
        removed: list[str] = []
        for path in paths:
            try:
                if self.storage.delete(path):
                    removed.append(path)
            except (OSError, ValueError) as exc:
                logger.warning("Failed to remove stored file %s: %s", path, exc)
        return removed


__all__ = ["LifecycleManager", "PurgeResult", "ResetResult"]
