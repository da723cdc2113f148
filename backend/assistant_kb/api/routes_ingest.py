"""Document upload and processing routes."""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from assistant_kb.api.dependencies import get_file_storage, get_ingest_pipeline, get_store, raise_http
from assistant_kb.core.errors import PipelineError
from assistant_kb.db.files import FileStorage
from assistant_kb.ingest.pipeline import IngestPipeline, register_upload
from assistant_kb.models.dto import DocumentResponse, ProcessResponse
from assistant_kb.retrieval.store import KnowledgeStore

router = APIRouter()


@router.post(
    "/assistants/{owner_id}/documents",
    response_model=DocumentResponse,
    status_code=201,
    summary="Upload a PDF for an assistant",
)
def upload_document(
    owner_id: str,
    name: str = Query(..., min_length=1, description="Original file name"),
    data: bytes = Body(b"", media_type="application/pdf"),
    store: KnowledgeStore = Depends(get_store),
    storage: FileStorage = Depends(get_file_storage),
) -> DocumentResponse:
    if not data:
        raise HTTPException(status_code=400, detail="Request body must contain the PDF bytes")
    try:
        document = register_upload(store, storage, owner_id, name, data)
    except PipelineError as exc:
        raise_http(exc)
    return DocumentResponse.from_entity(document)


@router.get(
    "/assistants/{owner_id}/documents",
    response_model=list[DocumentResponse],
    summary="List an assistant's documents",
)
def list_documents(owner_id: str, store: KnowledgeStore = Depends(get_store)) -> list[DocumentResponse]:
    return [DocumentResponse.from_entity(document) for document in store.list_documents(owner_id)]


@router.post(
    "/documents/{document_id}/process",
    response_model=ProcessResponse,
    summary="Extract, chunk and embed an uploaded document",
)
def process_document(
    document_id: str,
    pipeline: IngestPipeline = Depends(get_ingest_pipeline),
) -> ProcessResponse:
    try:
        result = pipeline.ingest(document_id)
    except PipelineError as exc:
        raise_http(exc)
    return ProcessResponse(
        document_id=result.document_id,
        chunks_processed=result.chunk_count,
        text_length=result.text_length,
    )


__all__ = ["router"]
