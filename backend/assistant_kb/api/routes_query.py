"""Retrieval and answer routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from assistant_kb.api.dependencies import (
    get_answer_service,
    get_app_settings,
    get_retrieval_service,
    raise_http,
)
from assistant_kb.core.config import Settings
from assistant_kb.core.errors import PipelineError
from assistant_kb.models.dto import (
    ContextRequest,
    ContextResponse,
    RespondRequest,
    RespondResponse,
    SearchHitResponse,
    SearchRequest,
    SearchResponse,
)
from assistant_kb.retrieval import AnswerService, RetrievalService, build_system_prompt

router = APIRouter()


@router.post(
    "/assistants/{owner_id}/search",
    response_model=SearchResponse,
    summary="Similarity search over an assistant's chunks",
)
def search_chunks(
    owner_id: str,
    request: SearchRequest,
    service: RetrievalService = Depends(get_retrieval_service),
    settings: Settings = Depends(get_app_settings),
) -> SearchResponse:
    threshold = request.threshold if request.threshold is not None else settings.default_match_threshold
    k = request.k if request.k is not None else settings.default_match_count
    try:
        vector = service.embedder.embed_query(request.query)
        hits = service.search(vector, owner_id, threshold, k)
    except PipelineError as exc:
        raise_http(exc)
    return SearchResponse(
        threshold=threshold,
        k=k,
        results=[SearchHitResponse.from_entity(hit) for hit in hits],
    )


@router.post(
    "/assistants/{owner_id}/context",
    response_model=ContextResponse,
    summary="Build the grounding context for a chat message",
)
def build_context(
    owner_id: str,
    request: ContextRequest,
    service: RetrievalService = Depends(get_retrieval_service),
) -> ContextResponse:
    try:
        result = service.retrieve(owner_id, request.message)
    except PipelineError as exc:
        raise_http(exc)
    return ContextResponse(
        knowledge_directed=result.knowledge_directed,
        threshold=result.threshold,
        k=result.k,
        results=[SearchHitResponse.from_entity(hit) for hit in result.hits],
        document_names=result.document_names,
        system_prompt=build_system_prompt(request.instructions, result),
    )


@router.post(
    "/assistants/{owner_id}/respond",
    response_model=RespondResponse,
    summary="Answer a message grounded in the assistant's documents",
)
def respond(
    owner_id: str,
    request: RespondRequest,
    service: AnswerService = Depends(get_answer_service),
) -> RespondResponse:
    try:
        answer = service.answer(owner_id, request.instructions, request.message)
    except PipelineError as exc:
        raise_http(exc)
    return RespondResponse(content=answer.content, used_knowledge_base=answer.used_knowledge_base)


__all__ = ["router"]
