"""Administrative routes: purge, reset, deletion and metrics."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from assistant_kb.api.dependencies import get_lifecycle_manager, raise_http
from assistant_kb.core.errors import PipelineError
from assistant_kb.core.metrics import metrics_response
from assistant_kb.db.lifecycle import LifecycleManager
from assistant_kb.models.dto import DeleteResponse, PurgeRequest, PurgeResponse, ResetResponse

router = APIRouter()


@router.post(
    "/assistants/{owner_id}/purge",
    response_model=PurgeResponse,
    summary="Delete an assistant's chunks, optionally for one document",
)
def purge_chunks(
    owner_id: str,
    request: PurgeRequest | None = None,
    manager: LifecycleManager = Depends(get_lifecycle_manager),
) -> PurgeResponse:
    document_id = request.document_id if request else None
    try:
        result = manager.purge(owner_id, document_id)
    except PipelineError as exc:
        raise_http(exc)
    return PurgeResponse(deleted_count=result.chunks)


@router.post(
    "/assistants/{owner_id}/reset",
    response_model=ResetResponse,
    summary="Remove every chunk, document and stored file of an assistant",
)
def reset_assistant(
    owner_id: str,
    manager: LifecycleManager = Depends(get_lifecycle_manager),
) -> ResetResponse:
    try:
        result = manager.reset(owner_id)
    except PipelineError as exc:
        raise_http(exc)
    return ResetResponse(
        chunks=result.chunks,
        documents=result.documents,
        storage_files=result.files,
        removed_files=result.removed_files,
    )


@router.delete(
    "/assistants/{owner_id}/documents/{document_id}",
    response_model=DeleteResponse,
    summary="Remove one document with its chunks and stored file",
)
def delete_document(
    owner_id: str,
    document_id: str,
    manager: LifecycleManager = Depends(get_lifecycle_manager),
) -> DeleteResponse:
    try:
        deleted = manager.delete_document(owner_id, document_id)
    except PipelineError as exc:
        raise_http(exc)
    return DeleteResponse(deleted=deleted)


@router.get("/metrics", summary="Prometheus metrics")
async def get_metrics():
    return metrics_response()


__all__ = ["router"]
