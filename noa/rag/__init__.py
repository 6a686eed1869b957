# noa/rag/__init__.py
from .embeddings import EmbeddingClient, get_embedding_client
from .indexer import index_document
from .retriever import PgVectorKnowledgeSearch

__all__ = [
    "EmbeddingClient",
    "get_embedding_client",
    "index_document",
    "PgVectorKnowledgeSearch",
]
