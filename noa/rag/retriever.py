# noa/rag/retriever.py
from __future__ import annotations

import asyncio
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.orm import sessionmaker

from noa.collaborators import Document
from noa.rag.embeddings import EmbeddingClient, get_embedding_client
from noa.services.database import db_session


class PgVectorKnowledgeSearch:
    """
    Knowledge-search collaborator over knowledge_documents using pgvector
    cosine distance. relevance_score is 1 - distance (higher is better).
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        embedding_client: Optional[EmbeddingClient] = None,
    ):
        self.session_factory = session_factory
        self._embedding_client = embedding_client

    @property
    def embedding_client(self) -> EmbeddingClient:
        if self._embedding_client is None:
            self._embedding_client = get_embedding_client()
        return self._embedding_client

    async def search(
        self,
        query: str,
        linked_only: bool = False,
        limit: int = 5,
    ) -> List[Document]:
        return await asyncio.to_thread(self._search, query, linked_only, limit)

    def _search(self, query: str, linked_only: bool, limit: int) -> List[Document]:
        query_emb = self.embedding_client.embed_one(query)  # shape (dim,)

        sql = text(
            """
            SELECT id, title, summary, category, tags, keywords,
                   (embedding <=> CAST(:query_embedding AS vector)) AS distance
            FROM knowledge_documents
            WHERE (:linked_only = false OR ai_linked = true)
            ORDER BY embedding <=> CAST(:query_embedding AS vector)
            LIMIT :k;
            """
        )

        with db_session(self.session_factory) as session:
            rows = session.execute(
                sql,
                {
                    "query_embedding": query_emb.tolist(),
                    "linked_only": linked_only,
                    "k": limit,
                },
            ).fetchall()

        documents: List[Document] = []
        for row in rows:
            distance = float(row.distance) if row.distance is not None else 1.0
            documents.append(
                Document(
                    id=row.id,
                    title=row.title,
                    summary=row.summary or "",
                    category=row.category,
                    tags=list(row.tags or []),
                    keywords=list(row.keywords or []),
                    relevance_score=1.0 - distance,
                )
            )
        return documents
