"""Tests for purge and reset."""

import pytest

from assistant_kb.core.errors import DocumentNotFoundError
from assistant_kb.db.lifecycle import LifecycleManager
from assistant_kb.ingest.chunker import ChunkDraft
from assistant_kb.retrieval import KnowledgeStore

QUERY = [1.0, 0.0, 0.0, 0.0]


@pytest.fixture
def store(db) -> KnowledgeStore:
    return KnowledgeStore(db, dim=4)


@pytest.fixture
def manager(store, storage) -> LifecycleManager:
    return LifecycleManager(store, storage)


def _seed(store, storage, owner_id: str, name: str, chunk_count: int):
    path = storage.save(owner_id, name, b"%PDF-1.4\n")
    document = store.create_document(owner_id, name, 9, path)
    drafts = [ChunkDraft(index=idx, text=f"{name} passage {idx}") for idx in range(chunk_count)]
    store.replace_chunks(document, drafts, [QUERY] * chunk_count)
    return document


def test_reset_removes_everything_for_owner(store, storage, manager) -> None:
    first = _seed(store, storage, "asst_a", "one.pdf", 6)
    _seed(store, storage, "asst_a", "two.pdf", 4)
    _seed(store, storage, "asst_b", "other.pdf", 3)

    result = manager.reset("asst_a")

    assert (result.chunks, result.documents, result.files) == (10, 2, 2)
    assert first.storage_path in result.removed_files
    assert store.search(QUERY, "asst_a", threshold=0.0, k=10) == []
    assert store.list_documents("asst_a") == []
    assert store.count_chunks("asst_b") == 3
    assert not (storage.root / first.storage_path).exists()


def test_purge_one_document(store, storage, manager) -> None:
    first = _seed(store, storage, "asst_a", "one.pdf", 3)
    second = _seed(store, storage, "asst_a", "two.pdf", 2)

    assert manager.purge("asst_a", first.id).chunks == 3
    assert store.count_chunks("asst_a", second.id) == 2
    assert {doc.id for doc in store.list_documents("asst_a")} == {first.id, second.id}

    assert manager.purge("asst_a").chunks == 2
    assert store.count_chunks("asst_a") == 0


def test_purge_ignores_other_owners_document(store, storage, manager) -> None:
    document = _seed(store, storage, "asst_a", "one.pdf", 2)
    assert manager.purge("asst_b", document.id).chunks == 0
    assert store.count_chunks("asst_a") == 2


def test_reset_tolerates_file_removal_failures(store, storage, manager, monkeypatch) -> None:
    _seed(store, storage, "asst_a", "one.pdf", 2)

    def _fail(path: str) -> bool:
        raise OSError("read-only file system")

    monkeypatch.setattr(storage, "delete", _fail)
    result = manager.reset("asst_a")

    assert (result.chunks, result.documents, result.files) == (2, 1, 0)
    assert store.list_documents("asst_a") == []


def test_delete_document_cascades_chunks(store, storage, manager) -> None:
    document = _seed(store, storage, "asst_a", "one.pdf", 3)
    assert manager.delete_document("asst_a", document.id) == 1
    assert store.count_chunks("asst_a") == 0
    assert not (storage.root / document.storage_path).exists()


def test_delete_document_checks_owner(store, storage, manager) -> None:
    document = _seed(store, storage, "asst_a", "one.pdf", 1)
    with pytest.raises(DocumentNotFoundError):
        manager.delete_document("asst_b", document.id)
    assert store.count_chunks("asst_a") == 1


def test_same_name_uploads_in_one_millisecond_stay_separate(storage, monkeypatch) -> None:
    from assistant_kb.db import files

    monkeypatch.setattr(files, "now_ms", lambda: 1700000000000)
    first = storage.save("asst_a", "handbook.pdf", b"%PDF-1.4\nfirst")
    second = storage.save("asst_a", "handbook.pdf", b"%PDF-1.4\nsecond")

    assert first != second
    assert first.startswith("knowledge/asst_a/1700000000000_")
    assert first.endswith("_handbook.pdf")
    assert storage.read(first) == b"%PDF-1.4\nfirst"
    assert storage.read(second) == b"%PDF-1.4\nsecond"
