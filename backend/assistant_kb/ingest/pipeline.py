"""Ingest pipeline orchestration."""

from __future__ import annotations

import time

from assistant_kb.core.config import Settings
from assistant_kb.core.errors import (
    InsufficientTextError,
    PipelineError,
    StorageError,
    UnsupportedDocumentError,
)
from assistant_kb.core.logging import get_logger
from assistant_kb.core.metrics import CHUNKS_STORED, INGEST_DURATION, INGEST_FAILURES
from assistant_kb.db.files import FileStorage
from assistant_kb.ingest.chunker import chunk_text
from assistant_kb.ingest.cleaner import clean_and_validate
from assistant_kb.ingest.embeddings import EmbeddingClient
from assistant_kb.ingest.extractor import BaseExtractor, HeuristicPDFExtractor
from assistant_kb.ingest.types import IngestResult
from assistant_kb.models.entities import Document
from assistant_kb.retrieval.store import KnowledgeStore

logger = get_logger(__name__)


def register_upload(
    store: KnowledgeStore,
    storage: FileStorage,
    owner_id: str,
    file_name: str,
    data: bytes,
) -> Document:
    """Store an uploaded PDF and register it as an unprocessed document.

    Uploading needs no embedding provider; only :meth:`IngestPipeline.ingest` does.
    """
    if not file_name.lower().endswith(".pdf") and not data.lstrip()[:5].startswith(b"%PDF"):
        raise UnsupportedDocumentError("Please upload a PDF file only")
    path = storage.save(owner_id, file_name, data)
    document = store.create_document(owner_id, file_name, len(data), path)
    logger.info(
        "Stored upload %s (%s bytes) as %s",
        file_name,
        len(data),
        document.id,
        extra={"ctx_owner_id": owner_id, "ctx_document_id": document.id},
    )
    return document


class IngestPipeline:
    """Coordinate extraction, cleaning, chunking, embeddings, and persistence."""

    def __init__(
        self,
        store: KnowledgeStore,
        storage: FileStorage,
        embedder: EmbeddingClient,
        settings: Settings,
        extractor: BaseExtractor | None = None,
    ) -> None:
        self.store = store
        self.storage = storage
        self.embedder = embedder
        self.settings = settings
        self.extractor = extractor or HeuristicPDFExtractor(
            min_chars=settings.extraction_min_chars,
            readable_ratio=settings.readable_alnum_ratio,
        )

    def upload(self, owner_id: str, file_name: str, data: bytes) -> Document:
        return register_upload(self.store, self.storage, owner_id, file_name, data)

    def ingest(self, document_id: str) -> IngestResult:
        """Process a previously uploaded document from file storage."""
        document = self.store.get_document(document_id)
        if not document.storage_path:
            raise StorageError(f"Document {document_id} has no stored file")
        try:
            data = self.storage.read(document.storage_path)
        except OSError as exc:
            raise StorageError(f"Failed to download file: {exc.strerror or exc}") from exc
        return self.ingest_bytes(data, document)

    def ingest_bytes(self, data: bytes, document: Document) -> IngestResult:
        """Run the full pipeline over ``data`` for ``document``.

        Any stage failure propagates as a :class:`PipelineError`; in that case
        no chunk of this run is stored and ``processed_at`` stays unset.
        """
        start_time = time.perf_counter()
        log_ctx = {"ctx_document_id": document.id, "ctx_owner_id": document.owner_id}
        try:
            raw_text = self.extractor.extract(data)
            text = self._clean(raw_text)
            drafts = chunk_text(
                text,
                max_chars=self.settings.chunk_max_chars,
                min_paragraph_chars=self.settings.chunk_min_paragraph_chars,
                split_ratio=self.settings.chunk_split_ratio,
                min_usable_chars=self.settings.chunk_min_usable_chars,
                min_alnum_ratio=self.settings.chunk_min_alnum_ratio,
                min_vowel_ratio=self.settings.chunk_min_vowel_ratio,
                max_digit_ratio=self.settings.chunk_max_digit_ratio,
            )
            if not drafts:
                raise InsufficientTextError("Insufficient readable text: no meaningful passages found")
            logger.info("Split %s into %s chunks", document.id, len(drafts), extra=log_ctx)

            batch = self.embedder.embed([draft.text for draft in drafts])
            chunks = self.store.replace_chunks(document, drafts, batch.vectors)
            processed_at = self.store.mark_processed(document.id)
        except PipelineError as exc:
            INGEST_FAILURES.labels(stage=exc.stage).inc()
            logger.warning("Ingestion of %s failed at %s: %s", document.id, exc.stage, exc.message, extra=log_ctx)
            raise

        CHUNKS_STORED.inc(len(chunks))
        INGEST_DURATION.observe(time.perf_counter() - start_time)
        logger.info("Ingested %s with %s chunks", document.id, len(chunks), extra=log_ctx)
        return IngestResult(
            document_id=document.id,
            text_length=len(text),
            processed_at=processed_at,
            chunks=chunks,
        )

    def _clean(self, raw_text: str) -> str:
        return clean_and_validate(
            raw_text,
            min_letter_ratio=self.settings.min_letter_ratio,
            min_vowel_ratio=self.settings.min_vowel_ratio,
            max_digit_ratio=self.settings.max_digit_ratio,
            min_chars=self.settings.min_text_chars,
            short_text_prefix=self.settings.short_text_prefix,
            short_text_chars=self.settings.short_text_chars,
        )


__all__ = ["IngestPipeline", "register_upload"]
