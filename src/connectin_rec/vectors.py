"""Genre feature vectors and the cosine similarity used to compare them."""
from __future__ import annotations

from typing import Iterable

import numpy as np

from .genres import GenreVocabulary, DEFAULT_VOCABULARY


def vectorize(
    genre_ids: Iterable[int],
    vocabulary: GenreVocabulary = DEFAULT_VOCABULARY,
) -> np.ndarray:
    """
    Multi-hot encode a movie's genres over the vocabulary.

    Genre ids outside the vocabulary are ignored so that new catalog genres
    never break scoring.
    """
    vector = np.zeros(len(vocabulary), dtype=np.float64)
    for genre_id in genre_ids:
        index = vocabulary.index_of(genre_id)
        if index is not None:
            vector[index] = 1.0
    return vector


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """
    Cosine similarity of two equal-length vectors.

    Returns 0.0 when either vector has zero norm.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError(f"Vector length mismatch: {a.shape} vs {b.shape}")

    norm_a = float(np.sqrt(np.dot(a, a)))
    norm_b = float(np.sqrt(np.dot(b, b)))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(a, b)) / (norm_a * norm_b)
