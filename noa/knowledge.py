# noa/knowledge.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from noa.collaborators import KnowledgeSearch
from noa.errors import CollaboratorError, call_collaborator
from noa.nlp.classifier import fold

SUMMARY_MAX_CHARS = 220
DEFAULT_KNOWLEDGE_QUERY = "relatório clínico"


@dataclass
class KnowledgeHighlight:
    id: str
    title: str
    summary: str

    def render(self) -> str:
        return f"Conhecimento em foco: {self.title}\n{self.summary}"


def extract_knowledge_query(message: str, fallback: str = DEFAULT_KNOWLEDGE_QUERY) -> str:
    """
    Map a message to a knowledge-base query: a few topical shortcuts,
    otherwise `fallback`.
    """
    folded = fold(message or "")
    if "documento mestre" in folded:
        return "documento mestre"
    if "biblioteca" in folded or "base de conhecimento" in folded:
        return "biblioteca clínica"
    if "protocolos" in folded and "cannabis" in folded:
        return "protocolos cannabis"
    if "nefrologia" in folded:
        return "nefrologia"
    return fallback


def _trim(summary: str) -> str:
    if len(summary) > SUMMARY_MAX_CHARS:
        return f"{summary[:SUMMARY_MAX_CHARS - 3]}..."
    return summary


async def find_knowledge_highlight(
    search: KnowledgeSearch,
    query: Optional[str],
    timeout: Optional[float] = None,
) -> Optional[KnowledgeHighlight]:
    """
    Best single document for `query`: AI-linked documents first, then the
    whole base. Search failures are logged and yield None.
    """
    if not query:
        return None

    try:
        results = await call_collaborator(
            "knowledge_search", search.search(query, linked_only=True, limit=1), timeout=timeout
        )
        if not results:
            results = await call_collaborator(
                "knowledge_search", search.search(query, linked_only=False, limit=1), timeout=timeout
            )
    except CollaboratorError as exc:
        logger.warning("Knowledge highlight lookup failed for {!r}: {}", query, exc)
        return None

    if not results:
        return None

    doc = results[0]
    return KnowledgeHighlight(id=doc.id, title=doc.title, summary=_trim(doc.summary or ""))
