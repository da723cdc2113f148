"""Retrieval orchestration components."""

from .generation import CompletionClient, OpenAIChatClient
from .search import AnswerService, RetrievalService, build_system_prompt, is_knowledge_query
from .store import KnowledgeStore

__all__ = [
    "KnowledgeStore",
    "RetrievalService",
    "AnswerService",
    "CompletionClient",
    "OpenAIChatClient",
    "build_system_prompt",
    "is_knowledge_query",
]
