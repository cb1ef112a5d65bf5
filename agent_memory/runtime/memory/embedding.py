"""
Embedding Generator - Deterministic text embeddings for memory similarity

WHAT: Feature-hashing embedder (words + character n-grams) and vector helpers
WHERE: agent_memory/runtime/memory/embedding.py - leaf of the engine
WHO: Store path (entry embeddings), search path (query embeddings)
TIME: ~0.1ms per short text, no I/O

The hashing embedder is a pure function of its input: identical text always
yields the identical unit vector, near-duplicate text shares most hashed
features, and unrelated text collides only by chance. A model-backed embedder
can replace it by implementing the same ``Embedder`` protocol.

Boundary Notes:
- Empty or featureless text embeds to the zero vector (never NaN)
- cosine_similarity returns 0.0 whenever either side has zero magnitude
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from typing import Iterable, List, Protocol, Sequence

import numpy as np

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


@dataclass(slots=True)
class EmbeddingConfig:
    """Configuration for the hashing embedder."""

    dimension: int = 384
    ngram_size: int = 3
    word_weight: float = 1.0
    ngram_weight: float = 0.5


class Embedder(Protocol):
    """Contract every embedder must satisfy (pure, deterministic, fixed D)."""

    @property
    def dimension(self) -> int:
        """Length of every returned vector."""

    def embed(self, text: str) -> List[float]:
        """Embed one text into a unit vector (or the zero vector)."""

    def embed_query(self, text: str) -> List[float]:
        """Embed a search query."""

    def embed_documents(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed a batch of documents."""


class HashingEmbedder:
    """Signed feature hashing over lower-cased words and their character n-grams."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self.config = config or EmbeddingConfig()
        if self.config.dimension <= 0:
            raise ValueError(f"Embedding dimension must be positive, got {self.config.dimension}")

    @property
    def dimension(self) -> int:
        return self.config.dimension

    def embed(self, text: str) -> List[float]:
        vec = np.zeros(self.config.dimension, dtype=np.float64)
        for feature, weight in self._features(text or ""):
            index, sign = self._bucket(feature)
            vec[index] += sign * weight
        return normalize(vec).tolist()

    def embed_query(self, text: str) -> List[float]:
        return self.embed(text)

    def embed_documents(self, texts: Sequence[str]) -> List[List[float]]:
        return [self.embed(text) for text in texts]

    def _features(self, text: str) -> Iterable[tuple[str, float]]:
        n = self.config.ngram_size
        for token in _TOKEN_RE.findall(text.lower()):
            yield f"w:{token}", self.config.word_weight
            if n <= 0:
                continue
            padded = f"<{token}>"
            for i in range(max(1, len(padded) - n + 1)):
                yield f"g:{padded[i:i + n]}", self.config.ngram_weight

    def _bucket(self, feature: str) -> tuple[int, float]:
        digest = hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest()
        value = int.from_bytes(digest, "big")
        index = value % self.config.dimension
        sign = 1.0 if (value >> 63) & 1 else -1.0
        return index, sign


def normalize(vec: np.ndarray) -> np.ndarray:
    """Scale to unit length; zero vectors are returned unchanged."""
    norm = float(np.linalg.norm(vec))
    if norm == 0.0 or not np.isfinite(norm):
        return np.zeros_like(vec, dtype=np.float64)
    return vec / norm


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """Compute cosine similarity between two vectors."""
    if len(vec1) == 0 or len(vec2) == 0 or len(vec1) != len(vec2):
        return 0.0
    v1 = np.asarray(vec1, dtype=np.float64)
    v2 = np.asarray(vec2, dtype=np.float64)
    norm = float(np.linalg.norm(v1)) * float(np.linalg.norm(v2))
    if norm == 0.0:
        return 0.0
    return float(np.clip(np.dot(v1, v2) / norm, -1.0, 1.0))


def cosine_similarities(query: Sequence[float], matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of ``query`` against every row of ``matrix``."""
    if matrix.size == 0:
        return np.zeros(0, dtype=np.float64)
    q = np.asarray(query, dtype=np.float64)
    q_norm = float(np.linalg.norm(q))
    row_norms = np.linalg.norm(matrix, axis=1)
    denom = row_norms * q_norm
    dots = matrix @ q
    sims = np.divide(dots, denom, out=np.zeros_like(dots), where=denom > 0)
    return np.clip(sims, -1.0, 1.0)


def mean_vector(vectors: Sequence[Sequence[float]], dimension: int) -> List[float]:
    """Unweighted mean of ``vectors``; not renormalised."""
    if not vectors:
        return [0.0] * dimension
    return np.mean(np.asarray(vectors, dtype=np.float64), axis=0).tolist()


__all__ = [
    "Embedder",
    "EmbeddingConfig",
    "HashingEmbedder",
    "cosine_similarity",
    "cosine_similarities",
    "mean_vector",
    "normalize",
]
