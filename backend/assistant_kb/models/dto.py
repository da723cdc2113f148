"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from assistant_kb.models.entities import Document, SearchHit
from assistant_kb.utils.time import ms_to_datetime


class DocumentResponse(BaseModel):
    id: str
    owner_id: str
    file_name: str
    file_size: int | None
    storage_path: str | None
    processed_at: datetime | None
    created_at: datetime

    @classmethod
    def from_entity(cls, document: Document) -> "DocumentResponse":
        return cls(
            id=document.id,
            owner_id=document.owner_id,
            file_name=document.file_name,
            file_size=document.file_size,
            storage_path=document.storage_path,
            processed_at=ms_to_datetime(document.processed_at),
            created_at=ms_to_datetime(document.created_at),
        )


class ProcessResponse(BaseModel):
    success: bool = True
    document_id: str
    chunks_processed: int
    text_length: int
    message: str = "PDF processed successfully"


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    threshold: float | None = Field(default=None, ge=-1.0, le=1.0)
    k: int | None = Field(default=None, ge=1, le=50)


class SearchHitResponse(BaseModel):
    chunk_id: str
    document_id: str
    chunk_index: int
    content: str
    similarity: float

    @classmethod
    def from_entity(cls, hit: SearchHit) -> "SearchHitResponse":
        return cls(
            chunk_id=hit.chunk_id,
            document_id=hit.document_id,
            chunk_index=hit.chunk_index,
            content=hit.content,
            similarity=hit.similarity,
        )


class SearchResponse(BaseModel):
    threshold: float
    k: int
    results: list[SearchHitResponse]


class ContextRequest(BaseModel):
    message: str = Field(min_length=1)
    instructions: str = ""


class ContextResponse(BaseModel):
    knowledge_directed: bool
    threshold: float
    k: int
    results: list[SearchHitResponse]
    document_names: list[str]
    system_prompt: str


class RespondRequest(BaseModel):
    message: str = Field(min_length=1)
    instructions: str


class RespondResponse(BaseModel):
    success: bool = True
    content: str
    used_knowledge_base: bool


class PurgeRequest(BaseModel):
    document_id: str | None = None


class PurgeResponse(BaseModel):
    success: bool = True
    deleted_count: int


class ResetResponse(BaseModel):
    success: bool = True
    chunks: int
    documents: int
    storage_files: int
    removed_files: list[str]


class DeleteResponse(BaseModel):
    success: bool = True
    deleted: int


__all__ = [
    "DocumentResponse",
    "ProcessResponse",
    "SearchRequest",
    "SearchHitResponse",
    "SearchResponse",
    "ContextRequest",
    "ContextResponse",
    "RespondRequest",
    "RespondResponse",
    "PurgeRequest",
    "PurgeResponse",
    "ResetResponse",
    "DeleteResponse",
]
