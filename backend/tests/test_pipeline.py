"""End-to-end tests for the ingest pipeline."""

import pytest

from assistant_kb.core.errors import (
    ExtractionError,
    InsufficientTextError,
    ProviderError,
    StorageError,
    UnsupportedDocumentError,
)
from assistant_kb.ingest import pipeline as pipeline_module
from assistant_kb.ingest.chunker import ChunkDraft
from assistant_kb.ingest.embeddings import EmbeddingClient, HashedEmbeddingProvider, build_embedding_client
from assistant_kb.ingest.extractor import BaseExtractor
from assistant_kb.ingest.pipeline import IngestPipeline
from assistant_kb.retrieval import KnowledgeStore, RetrievalService

INVOICE = "Invoice #1234 dated 01/02/2024 amount $50.00 thank you for your business"


class StaticExtractor(BaseExtractor):
    def __init__(self, text: str) -> None:
        self.text = text

    def extract(self, data: bytes) -> str:
        return self.text


class FailingProvider(HashedEmbeddingProvider):
    def embed_batch(self, texts):
        raise ProviderError("Embeddings API error: quota exceeded", status_code=429)


@pytest.fixture
def store(db, settings) -> KnowledgeStore:
    return KnowledgeStore(db, dim=settings.embedding_dim)


@pytest.fixture
def embedder(settings) -> EmbeddingClient:
    return build_embedding_client(settings, sleep=lambda _: None)


@pytest.fixture
def pipeline(store, storage, embedder, settings) -> IngestPipeline:
    return IngestPipeline(store, storage, embedder, settings)


@pytest.mark.parametrize("compress", [False, True])
def test_ingest_uploaded_pdf(pipeline, store, pdf_factory, prose_lines, compress: bool) -> None:
    document = pipeline.upload("asst_a", "handbook.pdf", pdf_factory(prose_lines, compress=compress))
    assert store.get_document(document.id).processed_at is None

    result = pipeline.ingest(document.id)

    text = "\n".join(prose_lines)
    assert result.chunk_count == 1
    assert result.text_length == len(text)
    assert store.list_chunks(document.id) == [(0, text)]
    assert store.get_document(document.id).processed_at == result.processed_at
    assert result.to_dict()["chunks_processed"] == 1


def test_ingested_chunks_are_searchable(pipeline, store, embedder, settings, pdf_factory, prose_lines) -> None:
    document = pipeline.upload("asst_a", "handbook.pdf", pdf_factory(prose_lines))
    pipeline.ingest(document.id)

    service = RetrievalService(store, embedder, settings)
    hits = service.search(embedder.embed_query(prose_lines[3]), "asst_a", threshold=0.0, k=5)
    assert [hit.document_id for hit in hits] == [document.id]
    assert service.search(embedder.embed_query(prose_lines[3]), "asst_b", threshold=0.0, k=5) == []


def test_reingest_replaces_chunks(pipeline, store, pdf_factory, prose_lines) -> None:
    document = pipeline.upload("asst_a", "handbook.pdf", pdf_factory(prose_lines))
    pipeline.ingest(document.id)
    pipeline.ingest(document.id)
    assert store.count_chunks("asst_a") == 1


def test_invoice_without_sentences_stores_nothing(store, storage, embedder, settings) -> None:
    pipeline = IngestPipeline(store, storage, embedder, settings, extractor=StaticExtractor(INVOICE))
    document = pipeline.upload("asst_a", "invoice.pdf", b"%PDF-1.4\n")

    with pytest.raises(InsufficientTextError) as excinfo:
        pipeline.ingest(document.id)

    assert excinfo.value.stage == "validation"
    assert store.count_chunks("asst_a") == 0
    assert store.get_document(document.id).processed_at is None


def test_unreadable_pdf_fails_extraction(pipeline, store) -> None:
    document = pipeline.upload("asst_a", "scan.pdf", b"%PDF-1.4\n" + b"\x00\x01\x02" * 50)
    with pytest.raises(ExtractionError):
        pipeline.ingest(document.id)
    assert store.count_chunks("asst_a") == 0


def test_provider_failure_leaves_document_unprocessed(store, storage, settings, pdf_factory, prose_lines) -> None:
    embedder = EmbeddingClient(FailingProvider(dim=settings.embedding_dim), dim=settings.embedding_dim)
    pipeline = IngestPipeline(store, storage, embedder, settings)
    document = pipeline.upload("asst_a", "handbook.pdf", pdf_factory(prose_lines))

    with pytest.raises(ProviderError) as excinfo:
        pipeline.ingest(document.id)

    assert excinfo.value.status_code == 429
    assert store.count_chunks("asst_a") == 0
    assert store.get_document(document.id).processed_at is None


def test_missing_stored_file_is_a_storage_error(pipeline, storage, pdf_factory, prose_lines) -> None:
    document = pipeline.upload("asst_a", "handbook.pdf", pdf_factory(prose_lines))
    storage.delete(document.storage_path)
    with pytest.raises(StorageError, match="Failed to download file"):
        pipeline.ingest(document.id)


def test_upload_rejects_non_pdf(pipeline) -> None:
    with pytest.raises(UnsupportedDocumentError, match="PDF"):
        pipeline.upload("asst_a", "notes.txt", b"plain text notes")


def _clashing_chunks(text, **_):
    return [ChunkDraft(index=0, text=text), ChunkDraft(index=0, text=text)]


def test_failed_chunk_write_keeps_previous_ingest(
    monkeypatch, pipeline, store, pdf_factory, prose_lines
) -> None:
    document = pipeline.upload("asst_a", "handbook.pdf", pdf_factory(prose_lines))
    first = pipeline.ingest(document.id)
    monkeypatch.setattr(pipeline_module, "chunk_text", _clashing_chunks)

    with pytest.raises(StorageError) as excinfo:
        pipeline.ingest(document.id)

    assert excinfo.value.stage == "storage"
    assert store.list_chunks(document.id) == [(0, "\n".join(prose_lines))]
    assert store.get_document(document.id).processed_at == first.processed_at


def test_failed_chunk_write_leaves_new_document_unprocessed(
    monkeypatch, pipeline, store, pdf_factory, prose_lines
) -> None:
    monkeypatch.setattr(pipeline_module, "chunk_text", _clashing_chunks)
    document = pipeline.upload("asst_a", "handbook.pdf", pdf_factory(prose_lines))

    with pytest.raises(StorageError):
        pipeline.ingest(document.id)

    assert store.count_chunks("asst_a") == 0
    assert store.get_document(document.id).processed_at is None
