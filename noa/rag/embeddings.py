# noa/rag/embeddings.py
from __future__ import annotations

from collections import OrderedDict
from functools import lru_cache
from threading import Lock
from typing import List, Optional

import numpy as np
from sentence_transformers import SentenceTransformer

from noa.config import get_settings

# Highlight lookups repeat a handful of queries ("relatório clínico", ...).
QUERY_CACHE_SIZE = 128


class EmbeddingClient:
    """
    sentence-transformers model used for knowledge documents and search
    queries. The model is loaded on first use; query vectors are cached.
    """

    def __init__(self, model_name: Optional[str] = None, dim: Optional[int] = None):
        settings = get_settings()
        self.model_name = model_name or settings.embedding_model
        self.dim = dim or settings.embedding_dim
        self._model: Optional[SentenceTransformer] = None
        self._load_lock = Lock()
        self._queries: "OrderedDict[str, np.ndarray]" = OrderedDict()

    @property
    def model(self) -> SentenceTransformer:
        with self._load_lock:
            if self._model is None:
                self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed(self, texts: List[str]) -> np.ndarray:
        """
        L2-normalised float32 array of shape (len(texts), dim).
        """
        if not texts:
            return np.zeros((0, self.dim), dtype=np.float32)

        vectors = self.model.encode(texts, convert_to_numpy=True, normalize_embeddings=True)
        if vectors.shape[1] != self.dim:
            raise ValueError(
                f"{self.model_name} produces {vectors.shape[1]}-d vectors but "
                f"EMBEDDING_DIM is {self.dim}"
            )
        return vectors.astype(np.float32)

    def embed_one(self, text: str) -> np.ndarray:
        key = " ".join(text.lower().split())
        cached = self._queries.get(key)
        if cached is not None:
            self._queries.move_to_end(key)
            return cached

        vector = self.embed([text])[0]
        self._queries[key] = vector
        if len(self._queries) > QUERY_CACHE_SIZE:
            self._queries.popitem(last=False)
        return vector


@lru_cache(maxsize=1)
def get_embedding_client() -> EmbeddingClient:
    return EmbeddingClient()
