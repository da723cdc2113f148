"""Shared FastAPI dependencies.

Every request gets its own connection, store and clients; only the settings
object is cached for the process.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Iterator

from fastapi import Depends, HTTPException

from assistant_kb.core.config import Settings, get_settings
from assistant_kb.core.errors import PipelineError, ProviderError
from assistant_kb.db.files import FileStorage
from assistant_kb.db.lifecycle import LifecycleManager
from assistant_kb.db.sqlite import SQLiteDatabase
from assistant_kb.ingest.embeddings import EmbeddingClient, build_embedding_client
from assistant_kb.ingest.pipeline import IngestPipeline
from assistant_kb.retrieval import AnswerService, KnowledgeStore, RetrievalService
from assistant_kb.retrieval.generation import build_completion_client

_STATUS_BY_STAGE = {
    "extraction": 422,
    "validation": 422,
    "provider": 502,
    "storage": 500,
    "lookup": 404,
}


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def raise_http(exc: PipelineError) -> None:
    """Translate a pipeline failure into an HTTP error with stage details."""
    raise HTTPException(status_code=_STATUS_BY_STAGE.get(exc.stage, 500), detail=exc.to_dict()) from exc


def get_database(settings: Settings = Depends(get_app_settings)) -> Iterator[SQLiteDatabase]:
    db = SQLiteDatabase(settings.db_path)
    db.ensure_schema()
    try:
        yield db
    finally:
        db.close()


def get_file_storage(settings: Settings = Depends(get_app_settings)) -> FileStorage:
    return FileStorage(settings.storage_dir)


def get_store(
    db: SQLiteDatabase = Depends(get_database),
    settings: Settings = Depends(get_app_settings),
) -> KnowledgeStore:
    return KnowledgeStore(db, dim=settings.embedding_dim)


def get_embedding_client(settings: Settings = Depends(get_app_settings)) -> EmbeddingClient:
    try:
        return build_embedding_client(settings)
    except ProviderError as exc:
        raise_http(exc)


def get_ingest_pipeline(
    store: KnowledgeStore = Depends(get_store),
    storage: FileStorage = Depends(get_file_storage),
    embedder: EmbeddingClient = Depends(get_embedding_client),
    settings: Settings = Depends(get_app_settings),
) -> IngestPipeline:
    return IngestPipeline(store=store, storage=storage, embedder=embedder, settings=settings)


def get_retrieval_service(
    store: KnowledgeStore = Depends(get_store),
    embedder: EmbeddingClient = Depends(get_embedding_client),
    settings: Settings = Depends(get_app_settings),
) -> RetrievalService:
    return RetrievalService(store=store, embedder=embedder, settings=settings)


def get_answer_service(
    retrieval: RetrievalService = Depends(get_retrieval_service),
    settings: Settings = Depends(get_app_settings),
) -> AnswerService:
    try:
        completion = build_completion_client(settings)
    except ProviderError as exc:
        raise_http(exc)
    return AnswerService(retrieval=retrieval, completion=completion)


def get_lifecycle_manager(
    store: KnowledgeStore = Depends(get_store),
    storage: FileStorage = Depends(get_file_storage),
) -> LifecycleManager:
    return LifecycleManager(store=store, storage=storage)


__all__ = [
    "get_app_settings",
    "get_database",
    "get_file_storage",
    "get_store",
    "get_embedding_client",
    "get_ingest_pipeline",
    "get_retrieval_service",
    "get_answer_service",
    "get_lifecycle_manager",
    "raise_http",
]
