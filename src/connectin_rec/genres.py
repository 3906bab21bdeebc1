"""Ordered genre vocabulary that fixes taste-vector layout."""
from __future__ import annotations

from typing import Iterable, Mapping

from .config import GENRE_MAP


class GenreVocabulary:
    """
    Fixed, ordered set of known genre ids.

    Position i of every feature vector refers to the i-th genre here, so the
    vector length is always ``len(vocabulary)``.
    """

    def __init__(self, genres: Mapping[int, str] | Iterable[int]):
        if isinstance(genres, Mapping):
            items = [(int(gid), str(name)) for gid, name in genres.items()]
        else:
            items = [(int(gid), str(gid)) for gid in genres]

        self._ids: tuple[int, ...] = tuple(gid for gid, _ in items)
        if len(set(self._ids)) != len(self._ids):
            raise ValueError("Genre vocabulary contains duplicate ids")
        self._names = dict(items)
        self._index = {gid: idx for idx, gid in enumerate(self._ids)}

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self):
        return iter(self._ids)

    def __contains__(self, genre_id: object) -> bool:
        return genre_id in self._index

    def __repr__(self) -> str:
        return f"GenreVocabulary({len(self)} genres)"

    @property
    def ids(self) -> tuple[int, ...]:
        return self._ids

    def index_of(self, genre_id: int) -> int | None:
        """Vector position of a genre, or None when the id is unknown."""
        return self._index.get(genre_id)

    def name_of(self, genre_id: int) -> str:
        return self._names.get(genre_id, f"Genre {genre_id}")

    def name_at(self, position: int) -> str:
        return self._names[self._ids[position]]


DEFAULT_VOCABULARY = GenreVocabulary(GENRE_MAP)
