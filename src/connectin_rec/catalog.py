import logging
import time
from typing import Any

import httpx
from tqdm import tqdm

from .config import (
    TMDB_API_KEY,
    TMDB_BASE_URL,
    HTTP_TIMEOUT,
    MAX_HTTP_RETRIES,
    MAX_429_RETRY_SECONDS,
    DEFAULT_RETRY_AFTER,
    DEFAULT_CANDIDATE_PAGES,
)
from .exceptions import CatalogError, ConfigurationError
from .models import Movie

logger = logging.getLogger(__name__)


def movie_from_tmdb(payload: dict[str, Any]) -> Movie:
    """Map a TMDb movie result onto a Movie; missing fields get neutral defaults."""
    return Movie(
        id=int(payload["id"]),
        title=payload.get("title") or payload.get("original_title") or "",
        genre_ids=payload.get("genre_ids") or [g["id"] for g in payload.get("genres", [])],
        popularity=payload.get("popularity") or 0.0,
        overview=payload.get("overview") or "",
        poster_path=payload.get("poster_path"),
        backdrop_path=payload.get("backdrop_path"),
        release_date=payload.get("release_date") or "",
        vote_average=payload.get("vote_average") or 0.0,
    )


def _retry_after_seconds(resp: httpx.Response) -> int:
    """Seconds to wait after a 429; always at least 1 so the wait budget runs out."""
    try:
        seconds = int(resp.headers.get("Retry-After", DEFAULT_RETRY_AFTER))
    except ValueError:
        seconds = DEFAULT_RETRY_AFTER
    return max(1, seconds)


class TmdbClient:
    """
    Movie catalog backed by the TMDb v3 API.

    Paging, rate limiting and network failures are handled here; callers get
    Movie records or a CatalogError.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = TMDB_BASE_URL,
        client: httpx.Client | None = None,
    ):
        self.api_key = api_key if api_key is not None else TMDB_API_KEY
        if not self.api_key:
            raise ConfigurationError("TMDB_API_KEY is not set")

        self.client = client or httpx.Client(
            base_url=base_url,
            headers={"Accept": "application/json"},
            timeout=HTTP_TIMEOUT,
        )

    def close(self) -> None:
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _get(self, path: str, max_retries: int = MAX_HTTP_RETRIES, **params) -> dict:
        params = {"api_key": self.api_key, **{k: v for k, v in params.items() if v is not None}}

        retries = 0
        total_429_wait_time = 0

        while retries < max_retries:
            try:
                resp = self.client.get(path, params=params)

                if resp.status_code == 429:
                    retry_after = _retry_after_seconds(resp)

                    if total_429_wait_time + retry_after > MAX_429_RETRY_SECONDS:
                        raise CatalogError(
                            f"Rate limit wait budget exceeded for {path} (waited {total_429_wait_time}s)",
                            status_code=429,
                        )

                    logger.warning(f"Rate limited (429) on {path}, waiting {retry_after}s...")
                    time.sleep(retry_after)
                    total_429_wait_time += retry_after
                    continue

                resp.raise_for_status()
                try:
                    return resp.json()
                except ValueError as e:
                    raise CatalogError(f"Invalid JSON from {path}: {e}") from e
            except httpx.TimeoutException as e:
                if retries < max_retries - 1:
                    wait_time = 2 ** retries
                    logger.warning(f"Timeout on {path}, retrying in {wait_time}s... (attempt {retries + 1}/{max_retries})")
                    time.sleep(wait_time)
                    retries += 1
                else:
                    raise CatalogError(f"Max retries exceeded for {path}: {e}") from e
            except httpx.HTTPStatusError as e:
                raise CatalogError(
                    f"HTTP error on {path}: {e.response.status_code}",
                    status_code=e.response.status_code,
                ) from e
            except httpx.HTTPError as e:
                raise CatalogError(f"Request error on {path}: {e}") from e

        raise CatalogError(f"Max retries exceeded for {path}")

    def _movies(self, path: str, **params) -> list[Movie]:
        data = self._get(path, **params)
        return [movie_from_tmdb(item) for item in data.get("results", [])]

    def popular(self, page: int = 1) -> list[Movie]:
        return self._movies("/movie/popular", page=page)

    def top_rated(self, page: int = 1) -> list[Movie]:
        return self._movies("/movie/top_rated", page=page)

    def now_playing(self, page: int = 1) -> list[Movie]:
        return self._movies("/movie/now_playing", page=page)

    def search(self, query: str, page: int = 1) -> list[Movie]:
        if not query or not query.strip():
            return []
        return self._movies("/search/movie", query=query.strip(), page=page)

    def discover_by_genre(self, genre_id: int, page: int = 1) -> list[Movie]:
        return self._movies(
            "/discover/movie",
            with_genres=str(genre_id),
            sort_by="popularity.desc",
            page=page,
        )

    def genres(self) -> dict[int, str]:
        data = self._get("/genre/movie/list")
        return {int(g["id"]): g["name"] for g in data.get("genres", [])}

    def candidate_pool(self, pages: int = DEFAULT_CANDIDATE_PAGES, show_progress: bool = False) -> list[Movie]:
        """
        Popular and top-rated movies, distinct by id in fetch order.

        A failing source is logged and skipped so one outage does not empty
        the recommendation feed.
        """
        sources = [(fetch, page) for page in range(1, pages + 1) for fetch in (self.popular, self.top_rated)]
        pool: list[Movie] = []
        seen: set[int] = set()

        for fetch, page in tqdm(sources, desc="Fetching candidates", disable=not show_progress):
            try:
                movies = fetch(page)
            except CatalogError as e:
                logger.warning(f"Skipping {fetch.__name__} page {page}: {e}")
                continue
            for movie in movies:
                if movie.id not in seen:
                    seen.add(movie.id)
                    pool.append(movie)

        logger.debug(f"Candidate pool: {len(pool)} movies from {len(sources)} requests")
        return pool
