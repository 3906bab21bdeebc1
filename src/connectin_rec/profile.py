import logging
from typing import Sequence

import numpy as np

from .config import PROFILE_TOP_GENRES
from .genres import GenreVocabulary, DEFAULT_VOCABULARY
from .models import Movie
from .vectors import vectorize

logger = logging.getLogger(__name__)

# Mean genre-affinity vector; components in [0, 1]
TasteProfile = np.ndarray


def empty_profile(vocabulary: GenreVocabulary = DEFAULT_VOCABULARY) -> TasteProfile:
    return np.zeros(len(vocabulary), dtype=np.float64)


def build_profile(
    watched: Sequence[Movie],
    vocabulary: GenreVocabulary = DEFAULT_VOCABULARY,
) -> TasteProfile:
    """
    Aggregate watched movies into a taste profile.

    The profile is the arithmetic mean of the movies' genre vectors, so users
    with long and short histories are comparable. An empty history yields the
    zero vector.
    """
    if not watched:
        return empty_profile(vocabulary)

    total = empty_profile(vocabulary)
    for movie in watched:
        total += vectorize(movie.genre_ids, vocabulary)

    profile = total / len(watched)
    logger.debug(f"Built taste profile from {len(watched)} movies")
    return profile


def describe_profile(
    profile: TasteProfile,
    vocabulary: GenreVocabulary = DEFAULT_VOCABULARY,
    top_k: int = PROFILE_TOP_GENRES,
) -> list[tuple[str, float]]:
    """Strongest genre affinities, highest first; zero components are skipped."""
    order = sorted(range(len(vocabulary)), key=lambda i: -profile[i])
    return [
        (vocabulary.name_at(i), float(profile[i]))
        for i in order[:max(top_k, 0)]
        if profile[i] > 0
    ]
