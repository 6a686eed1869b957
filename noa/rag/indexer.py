# noa/rag/indexer.py
from __future__ import annotations

from typing import List, Optional

from loguru import logger
from sqlalchemy.orm import sessionmaker

from noa.models import KnowledgeDocument
from noa.rag.embeddings import EmbeddingClient, get_embedding_client
from noa.services.database import db_session


def _document_text(title: str, summary: str, keywords: List[str]) -> str:
    parts = [title]
    if summary:
        parts.append(summary)
    if keywords:
        parts.append("Palavras-chave: " + ", ".join(keywords))
    return "\n".join(parts)


def index_document(
    title: str,
    summary: str,
    category: str = "geral",
    tags: Optional[List[str]] = None,
    keywords: Optional[List[str]] = None,
    ai_linked: bool = False,
    session_factory: Optional[sessionmaker] = None,
    embedding_client: Optional[EmbeddingClient] = None,
) -> str:
    """
    Embed a knowledge document and insert it into knowledge_documents.

    Returns: the new document id.
    """
    keywords = keywords or []
    emb_client = embedding_client or get_embedding_client()
    embedding = emb_client.embed([_document_text(title, summary, keywords)])[0]

    with db_session(session_factory) as session:
        doc = KnowledgeDocument(
            title=title,
            summary=summary,
            category=category,
            tags=tags or [],
            keywords=keywords,
            ai_linked=ai_linked,
            embedding=embedding,
        )
        session.add(doc)
        session.flush()
        doc_id = doc.id

    logger.info("Indexed knowledge document {} ({})", doc_id, title)
    return doc_id
