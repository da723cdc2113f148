"""Retrieval orchestration."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from assistant_kb.core.config import Settings
from assistant_kb.core.logging import get_logger
from assistant_kb.core.metrics import SEARCH_LATENCY
from assistant_kb.ingest.embeddings import EmbeddingClient
from assistant_kb.models.entities import SearchHit
from assistant_kb.retrieval.generation import CompletionClient
from assistant_kb.retrieval.store import KnowledgeStore

logger = get_logger(__name__)


@dataclass(slots=True)
class RetrievalResult:
    question: str
    knowledge_directed: bool
    threshold: float
    k: int
    hits: list[SearchHit] = field(default_factory=list)
    document_names: list[str] = field(default_factory=list)

    @property
    def used_knowledge_base(self) -> bool:
        return bool(self.hits)


@dataclass(slots=True)
class Answer:
    content: str
    used_knowledge_base: bool
    retrieval: RetrievalResult


def is_knowledge_query(question: str, keywords: Iterable[str]) -> bool:
    """True when the question mentions documents, files or similar terms."""
    terms = [re.escape(keyword.lower()) for keyword in keywords if keyword.strip()]
    if not terms:
        return False
    return re.search(rf"\b(?:{'|'.join(terms)})", question.lower()) is not None


class RetrievalService:
    """Embeds questions and pulls grounding passages for one assistant.

    Knowledge-directed questions get a lower threshold and a larger ``k``:
    the user asked about the documents, so weaker matches are still worth
    showing. Everything else stays conservative.
    """

    def __init__(self, store: KnowledgeStore, embedder: EmbeddingClient, settings: Settings) -> None:
        self.store = store
        self.embedder = embedder
        self.settings = settings

    def retrieve(self, owner_id: str, question: str) -> RetrievalResult:
        knowledge_directed = is_knowledge_query(question, self.settings.knowledge_keywords)
        if knowledge_directed:
            threshold = self.settings.knowledge_match_threshold
            k = self.settings.knowledge_match_count
        else:
            threshold = self.settings.default_match_threshold
            k = self.settings.default_match_count

        query_vector = self.embedder.embed_query(question)
        hits = self.search(query_vector, owner_id, threshold, k, mode="knowledge" if knowledge_directed else "default")
        result = RetrievalResult(
            question=question,
            knowledge_directed=knowledge_directed,
            threshold=threshold,
            k=k,
            hits=hits,
        )
        if not hits:
            result.document_names = self.store.document_names(owner_id)
        logger.info(
            "Retrieved %s chunks for owner %s (threshold=%s, k=%s)",
            len(hits),
            owner_id,
            threshold,
            k,
            extra={"ctx_owner_id": owner_id, "ctx_knowledge_directed": knowledge_directed},
        )
        return result

    def search(
        self,
        query_vector: Sequence[float],
        owner_id: str,
        threshold: float,
        k: int,
        mode: str = "direct",
    ) -> list[SearchHit]:
        start_time = time.perf_counter()
        hits = self.store.search(query_vector, owner_id, threshold, k)
        SEARCH_LATENCY.labels(mode=mode).observe(time.perf_counter() - start_time)
        return hits


def build_system_prompt(instructions: str, result: RetrievalResult) -> str:
    """Combine the assistant's instructions with retrieved grounding context."""
    prompt = instructions.strip()
    if result.hits:
        passages = "\n\n".join(hit.content for hit in result.hits)
        prompt += f"\n\nRelevant information from your knowledge base:\n{passages}"
    elif result.document_names:
        names = ", ".join(result.document_names)
        prompt += (
            f"\n\nYour knowledge base contains these documents: {names}. "
            "No passage from them matched this question closely enough. Tell the user "
            "which documents are available instead of guessing their content."
        )
    return prompt


class AnswerService:
    """Retrieval plus a completion call: the full question-answer flow."""

    def __init__(self, retrieval: RetrievalService, completion: CompletionClient) -> None:
        self.retrieval = retrieval
        self.completion = completion

    def answer(self, owner_id: str, instructions: str, message: str) -> Answer:
        result = self.retrieval.retrieve(owner_id, message)
        system_prompt = build_system_prompt(instructions, result)
        content = self.completion.complete(system_prompt, message)
        return Answer(content=content, used_knowledge_base=result.used_knowledge_base, retrieval=result)


__all__ = [
    "RetrievalService",
    "RetrievalResult",
    "AnswerService",
    "Answer",
    "build_system_prompt",
    "is_knowledge_query",
]
