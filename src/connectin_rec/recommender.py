import logging
from typing import Iterable, Sequence

from .config import DEFAULT_TOP_N_MOVIES, DEFAULT_TOP_N_USERS
from .feature_weights import RecommenderWeights
from .genres import GenreVocabulary, DEFAULT_VOCABULARY
from .models import Movie, ScoredMovie, User, UserSimilarity
from .profile import build_profile
from .vectors import cosine_similarity, vectorize

logger = logging.getLogger(__name__)


def _distinct_by_id(movies: Iterable[Movie]) -> list[Movie]:
    """Drop repeated ids, keeping the first occurrence and input order."""
    seen: set[int] = set()
    distinct = []
    for movie in movies:
        if movie.id in seen:
            continue
        seen.add(movie.id)
        distinct.append(movie)
    return distinct


def _movie_ids(movies: Iterable[Movie]) -> set[int]:
    return {movie.id for movie in movies}


def jaccard_similarity(ids_a: set[int], ids_b: set[int]) -> float:
    union = ids_a | ids_b
    if not union:
        return 0.0
    return len(ids_a & ids_b) / len(union)


class ContentRecommender:
    """
    Content-based filtering over genre vectors.

    Candidates are scored against the user's taste profile, blended with
    catalog popularity so a new user with no history still gets a
    popularity-ordered list.
    """

    def __init__(
        self,
        vocabulary: GenreVocabulary = DEFAULT_VOCABULARY,
        weights: RecommenderWeights | None = None,
    ):
        self.vocabulary = vocabulary
        self.weights = weights or RecommenderWeights()

    def score(self, profile, movie: Movie) -> float:
        similarity = cosine_similarity(profile, vectorize(movie.genre_ids, self.vocabulary))
        popularity = movie.popularity / self.weights.popularity_normalizer
        return (
            self.weights.similarity_weight * similarity
            + self.weights.popularity_weight * popularity
        )

    def recommend(
        self,
        watched: Sequence[Movie],
        candidates: Sequence[Movie],
        top_n: int = DEFAULT_TOP_N_MOVIES,
    ) -> list[ScoredMovie]:
        """
        Rank unseen candidates for a user.

        Args:
            watched: Movies the user has logged
            candidates: Movies to rank; may contain duplicates and seen movies
            top_n: Maximum number of results

        Returns:
            ScoredMovie list, best first. Ties keep candidate order.
        """
        if top_n <= 0 or not candidates:
            return []

        profile = build_profile(watched, self.vocabulary)
        watched_ids = _movie_ids(watched)
        unwatched = [m for m in _distinct_by_id(candidates) if m.id not in watched_ids]

        scored = [ScoredMovie(movie, self.score(profile, movie)) for movie in unwatched]
        # sorted() is stable, so equal scores keep input order
        scored = sorted(scored, key=lambda s: s.score, reverse=True)

        logger.debug(
            f"Scored {len(unwatched)} of {len(candidates)} candidates "
            f"against {len(watched)} watched movies"
        )
        return scored[:top_n]


class CollaborativeRecommender:
    """
    User-to-user similarity for "people you might know" suggestions.

    Combines cosine similarity of taste profiles with Jaccard overlap of the
    movie ids both users logged.
    """

    def __init__(
        self,
        vocabulary: GenreVocabulary = DEFAULT_VOCABULARY,
        weights: RecommenderWeights | None = None,
    ):
        self.vocabulary = vocabulary
        self.weights = weights or RecommenderWeights()

    def user_similarity(self, movies_a: Sequence[Movie], movies_b: Sequence[Movie]) -> float:
        if not movies_a or not movies_b:
            return 0.0

        cosine = cosine_similarity(
            build_profile(movies_a, self.vocabulary),
            build_profile(movies_b, self.vocabulary),
        )
        # Profiles are non-negative; clip rounding noise so the blend stays in [0, 1]
        cosine = min(max(cosine, 0.0), 1.0)
        jaccard = jaccard_similarity(_movie_ids(movies_a), _movie_ids(movies_b))

        return self.weights.cosine_weight * cosine + self.weights.jaccard_weight * jaccard

    def suggest_users(
        self,
        current_user_movies: Sequence[Movie],
        others: Iterable[tuple[str | User, Sequence[Movie]]],
        top_n: int = DEFAULT_TOP_N_USERS,
    ) -> list[UserSimilarity]:
        """
        Rank other users by taste similarity.

        Args:
            current_user_movies: Movies the current user has logged
            others: (user id or User, movies) pairs for candidate users
            top_n: Maximum number of suggestions

        Returns:
            UserSimilarity list above the minimum threshold, most similar first.
        """
        if top_n <= 0:
            return []

        current_ids = _movie_ids(current_user_movies)
        suggestions = []
        for other, movies in others:
            user = other if isinstance(other, User) else None
            user_id = other.id if user else other
            suggestions.append(
                UserSimilarity(
                    user_id=user_id,
                    similarity=self.user_similarity(current_user_movies, movies),
                    shared_movies=len(current_ids & _movie_ids(movies)),
                    user=user,
                )
            )

        relevant = [s for s in suggestions if s.similarity > self.weights.min_similarity]
        relevant = sorted(relevant, key=lambda s: s.similarity, reverse=True)

        logger.debug(f"{len(relevant)} of {len(suggestions)} users above similarity threshold")
        return relevant[:top_n]


def recommend(
    watched: Sequence[Movie],
    candidates: Sequence[Movie],
    top_n: int = DEFAULT_TOP_N_MOVIES,
    vocabulary: GenreVocabulary = DEFAULT_VOCABULARY,
    weights: RecommenderWeights | None = None,
) -> list[ScoredMovie]:
    """Convenience wrapper around ContentRecommender.recommend."""
    return ContentRecommender(vocabulary, weights).recommend(watched, candidates, top_n)


def suggest_users(
    current_user_movies: Sequence[Movie],
    others: Iterable[tuple[str | User, Sequence[Movie]]],
    top_n: int = DEFAULT_TOP_N_USERS,
    vocabulary: GenreVocabulary = DEFAULT_VOCABULARY,
    weights: RecommenderWeights | None = None,
) -> list[UserSimilarity]:
    """Convenience wrapper around CollaborativeRecommender.suggest_users."""
    return CollaborativeRecommender(vocabulary, weights).suggest_users(
        current_user_movies, others, top_n
    )
