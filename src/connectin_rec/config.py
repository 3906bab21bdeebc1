"""
Configuration constants for the ConnectIn recommender.

This module centralizes all magic numbers and configurable parameters.
Values can be overridden via environment variables or a weights file.
"""
import os
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def _get_float_env(key: str, default: float, min_val: float = 0) -> float:
    """
    Safely parse float from environment variable with validation.

    Args:
        key: Environment variable name
        default: Default value if not set or invalid
        min_val: Minimum allowed value

    Returns:
        Validated float value
    """
    try:
        val = float(os.environ.get(key, default))
        if val < min_val:
            logger.warning(f"{key}={val} is below minimum {min_val}, using {min_val}")
            return min_val
        return val
    except ValueError:
        logger.warning(f"Invalid {key}='{os.environ.get(key)}', using default {default}")
        return default


def _get_int_env(key: str, default: int, min_val: int = 1) -> int:
    """
    Safely parse integer from environment variable with validation.

    Args:
        key: Environment variable name
        default: Default value if not set or invalid
        min_val: Minimum allowed value

    Returns:
        Validated integer value
    """
    try:
        val = int(os.environ.get(key, default))
        if val < min_val:
            logger.warning(f"{key}={val} is below minimum {min_val}, using {min_val}")
            return min_val
        return val
    except ValueError:
        logger.warning(f"Invalid {key}='{os.environ.get(key)}', using default {default}")
        return default


# Store Configuration
DB_PATH = Path(os.environ.get("CONNECTIN_DB", "data/connectin.db"))

# Catalog (TMDb) Configuration
TMDB_API_KEY = os.environ.get("TMDB_API_KEY", "")
TMDB_BASE_URL = os.environ.get("TMDB_BASE_URL", "https://api.themoviedb.org/3")
TMDB_IMAGE_BASE_URL = "https://image.tmdb.org/t/p"
POSTER_SIZE = "w500"
BACKDROP_SIZE = "w780"
HTTP_TIMEOUT = _get_float_env("CONNECTIN_HTTP_TIMEOUT", 30.0, min_val=1.0)
DEFAULT_CANDIDATE_PAGES = _get_int_env("CONNECTIN_CANDIDATE_PAGES", 1, min_val=1)

# Retry and Rate Limiting
MAX_HTTP_RETRIES = _get_int_env("CONNECTIN_MAX_HTTP_RETRIES", 3, min_val=1)
MAX_429_RETRY_SECONDS = 300  # Maximum total time to wait for 429 responses
DEFAULT_RETRY_AFTER = 10  # Default wait time if Retry-After header missing

# Optional JSON file overriding the hybrid weights below
RECOMMENDER_WEIGHTS_PATH = Path(os.environ.get("CONNECTIN_WEIGHTS", "data/recommender_weights.json"))

# Content scoring: 70% taste match, 30% raw popularity
CONTENT_SIMILARITY_WEIGHT = 0.7
CONTENT_POPULARITY_WEIGHT = 0.3
# TMDb popularity scale; recalibrate if the catalog provider changes
POPULARITY_NORMALIZER = 1000.0

# Collaborative scoring: genre taste alignment over raw catalog overlap
COLLAB_COSINE_WEIGHT = 0.6
COLLAB_JACCARD_WEIGHT = 0.4
MIN_USER_SIMILARITY = 0.1  # Suggestions at or below this are noise

# Result sizes
DEFAULT_TOP_N_MOVIES = 10
DEFAULT_TOP_N_USERS = 5
FEED_TOP_N_MOVIES = 20  # Home feed size
FEED_TOP_N_USERS = 10  # "People you might know" size
PROFILE_TOP_GENRES = 5

# TMDb movie genres. Order defines taste-vector component positions.
GENRE_MAP = {
    28: "Action",
    12: "Adventure",
    16: "Animation",
    35: "Comedy",
    80: "Crime",
    99: "Documentary",
    18: "Drama",
    10751: "Family",
    14: "Fantasy",
    36: "History",
    27: "Horror",
    10402: "Music",
    9648: "Mystery",
    10749: "Romance",
    878: "Science Fiction",
    10770: "TV Movie",
    53: "Thriller",
    10752: "War",
    37: "Western",
}
