"""Tests for storage-backed retrieval."""

import math

import pytest

from assistant_kb.core.config import Settings
from assistant_kb.core.errors import DimensionMismatchError, DocumentNotFoundError, StorageError
from assistant_kb.ingest.chunker import ChunkDraft
from assistant_kb.retrieval import (
    AnswerService,
    KnowledgeStore,
    RetrievalService,
    build_system_prompt,
    is_knowledge_query,
)

QUERY = [1.0, 0.0, 0.0, 0.0]


def _vector(similarity: float) -> list[float]:
    """Unit vector with the given cosine similarity to ``QUERY``."""
    return [similarity, math.sqrt(1.0 - similarity * similarity), 0.0, 0.0]


def _seed(store: KnowledgeStore, owner_id: str, similarities, name: str = "policy.pdf"):
    document = store.create_document(owner_id, name, 1024, None)
    drafts = [ChunkDraft(index=idx, text=f"{name} passage {idx}") for idx in range(len(similarities))]
    store.replace_chunks(document, drafts, [_vector(value) for value in similarities])
    return document


@pytest.fixture
def store(db) -> KnowledgeStore:
    return KnowledgeStore(db, dim=4)


class FakeCompletion:
    def __init__(self) -> None:
        self.prompts: list[tuple[str, str]] = []

    def complete(self, system_prompt: str, message: str) -> str:
        self.prompts.append((system_prompt, message))
        return "answer"


def test_search_orders_by_similarity_and_limits(store: KnowledgeStore) -> None:
    _seed(store, "asst_a", [0.9, 0.5, 0.7])
    hits = store.search(QUERY, "asst_a", threshold=0.3, k=2)
    assert [hit.chunk_index for hit in hits] == [0, 2]
    assert hits[0].similarity == pytest.approx(0.9, abs=1e-5)


def test_search_breaks_ties_by_chunk_id(store: KnowledgeStore) -> None:
    _seed(store, "asst_a", [0.8, 0.8, 0.8])
    hits = store.search(QUERY, "asst_a", threshold=0.3, k=3)
    assert [hit.chunk_id for hit in hits] == sorted(hit.chunk_id for hit in hits)


def test_search_is_scoped_to_owner(store: KnowledgeStore) -> None:
    _seed(store, "asst_a", [0.9])
    _seed(store, "asst_b", [0.95, 0.9])
    hits = store.search(QUERY, "asst_a", threshold=0.0, k=10)
    assert len(hits) == 1
    assert store.search(QUERY, "asst_c", threshold=0.0, k=10) == []


def test_search_with_zero_k_and_wrong_dim(store: KnowledgeStore) -> None:
    _seed(store, "asst_a", [0.9])
    assert store.search(QUERY, "asst_a", threshold=0.0, k=0) == []
    with pytest.raises(DimensionMismatchError):
        store.search([1.0, 0.0], "asst_a", threshold=0.0, k=5)


def test_replace_chunks_swaps_previous_set(store: KnowledgeStore) -> None:
    document = _seed(store, "asst_a", [0.9, 0.8, 0.7])
    store.replace_chunks(document, [ChunkDraft(index=0, text="fresh")], [_vector(0.6)])
    assert store.list_chunks(document.id) == [(0, "fresh")]
    assert store.count_chunks("asst_a") == 1


def test_replace_chunks_rejects_wrong_dim(store: KnowledgeStore) -> None:
    document = _seed(store, "asst_a", [0.9])
    with pytest.raises(DimensionMismatchError):
        store.replace_chunks(document, [ChunkDraft(index=0, text="bad")], [[1.0, 0.0]])
    assert store.list_chunks(document.id) == [(0, "policy.pdf passage 0")]


def test_failed_replace_keeps_previous_chunks(store: KnowledgeStore) -> None:
    document = _seed(store, "asst_a", [0.9, 0.8])
    drafts = [ChunkDraft(index=0, text="first"), ChunkDraft(index=0, text="second")]
    with pytest.raises(StorageError) as excinfo:
        store.replace_chunks(document, drafts, [_vector(0.5), _vector(0.4)])
    assert excinfo.value.stage == "storage"
    assert store.list_chunks(document.id) == [(0, "policy.pdf passage 0"), (1, "policy.pdf passage 1")]


def test_missing_document_raises(store: KnowledgeStore) -> None:
    with pytest.raises(DocumentNotFoundError):
        store.get_document("doc_missing")


def test_threshold_depends_on_question_kind(store: KnowledgeStore, fake_embedder) -> None:
    _seed(store, "asst_a", [0.25])
    service = RetrievalService(store, fake_embedder(QUERY), Settings())

    plain = service.retrieve("asst_a", "What is the refund policy?")
    assert plain.knowledge_directed is False
    assert plain.threshold == 0.3
    assert plain.hits == []
    assert plain.document_names == ["policy.pdf"]

    directed = service.retrieve("asst_a", "What does the uploaded document say about refunds?")
    assert directed.knowledge_directed is True
    assert (directed.threshold, directed.k) == (0.1, 8)
    assert len(directed.hits) == 1
    assert directed.hits[0].similarity == pytest.approx(0.25, abs=1e-5)
    assert directed.document_names == []


def test_is_knowledge_query() -> None:
    keywords = Settings().knowledge_keywords
    assert is_knowledge_query("Summarize the attached report", keywords)
    assert is_knowledge_query("What is in my FILES?", keywords)
    assert not is_knowledge_query("How are you today?", keywords)
    assert not is_knowledge_query("What is in my profile?", keywords)


def test_system_prompt_includes_passages_or_names(store: KnowledgeStore, fake_embedder) -> None:
    _seed(store, "asst_a", [0.9, 0.2])
    service = RetrievalService(store, fake_embedder(QUERY), Settings())

    prompt = build_system_prompt("Be concise.", service.retrieve("asst_a", "refunds?"))
    assert prompt.startswith("Be concise.\n\nRelevant information from your knowledge base:\n")
    assert "policy.pdf passage 0" in prompt
    assert "policy.pdf passage 1" not in prompt

    empty = RetrievalService(store, fake_embedder([0.0, 0.0, 1.0, 0.0]), Settings())
    fallback = build_system_prompt("Be concise.", empty.retrieve("asst_a", "refunds?"))
    assert "policy.pdf" in fallback
    assert "Relevant information" not in fallback


def test_answer_service_grounds_completion(store: KnowledgeStore, fake_embedder) -> None:
    _seed(store, "asst_a", [0.9])
    completion = FakeCompletion()
    service = AnswerService(RetrievalService(store, fake_embedder(QUERY), Settings()), completion)

    answer = service.answer("asst_a", "You help with policies.", "Can I return an item?")

    assert answer.content == "answer"
    assert answer.used_knowledge_base is True
    system_prompt, message = completion.prompts[0]
    assert message == "Can I return an item?"
    assert "policy.pdf passage 0" in system_prompt
