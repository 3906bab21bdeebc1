"""Plain data records shared by the catalog, the store and the recommenders."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from .config import TMDB_IMAGE_BASE_URL, POSTER_SIZE, BACKDROP_SIZE


def _image_url(path: str | None, size: str) -> str:
    if not path:
        return ""
    return f"{TMDB_IMAGE_BASE_URL}/{size}{path}"


@dataclass(frozen=True)
class Movie:
    """A catalog movie. Only id, genres and popularity matter for scoring."""
    id: int
    title: str
    genre_ids: frozenset[int] = field(default_factory=frozenset)
    popularity: float = 0.0
    overview: str = ""
    poster_path: str | None = None
    backdrop_path: str | None = None
    release_date: str = ""
    vote_average: float = 0.0

    def __post_init__(self) -> None:
        # Accept any iterable of ids; duplicates carry no meaning
        object.__setattr__(self, "genre_ids", frozenset(int(g) for g in self.genre_ids))
        object.__setattr__(self, "popularity", float(self.popularity))

    @property
    def full_poster_path(self) -> str:
        return _image_url(self.poster_path, POSTER_SIZE)

    @property
    def full_backdrop_path(self) -> str:
        return _image_url(self.backdrop_path, BACKDROP_SIZE)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "genre_ids": sorted(self.genre_ids),
            "popularity": self.popularity,
            "overview": self.overview,
            "poster_path": self.poster_path,
            "backdrop_path": self.backdrop_path,
            "release_date": self.release_date,
            "vote_average": self.vote_average,
        }


@dataclass
class MovieLog:
    """One watch event recorded for a user."""
    user_id: str
    movie_id: int
    title: str
    genre_ids: list[int] = field(default_factory=list)
    poster_path: str | None = None
    watched_date: str = field(default_factory=lambda: datetime.now().isoformat())
    rating: float | None = None
    id: int | None = None

    def to_movie(self) -> Movie:
        """Rebuild a scoring-ready Movie; popularity is unknown for logs."""
        return Movie(
            id=self.movie_id,
            title=self.title,
            genre_ids=self.genre_ids,
            popularity=0.0,
            poster_path=self.poster_path,
        )


@dataclass
class User:
    id: str
    email: str
    username: str
    avatar_url: str | None = None
    bio: str | None = None


@dataclass(frozen=True)
class ScoredMovie:
    movie: Movie
    score: float


@dataclass(frozen=True)
class UserSimilarity:
    """Similarity of another user to the current one, for friend suggestions."""
    user_id: str
    similarity: float
    shared_movies: int
    user: User | None = None

    @property
    def display_name(self) -> str:
        return self.user.username if self.user else str(self.user_id)


def movies_from_logs(logs: Iterable[MovieLog]) -> list[Movie]:
    return [log.to_movie() for log in logs]
