"""
Tunable hybrid weights for the content and collaborative recommenders.

Weights are loaded from a JSON file. When no file is available, the system
falls back to the documented defaults in config.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from .config import (
    RECOMMENDER_WEIGHTS_PATH,
    CONTENT_SIMILARITY_WEIGHT,
    CONTENT_POPULARITY_WEIGHT,
    POPULARITY_NORMALIZER,
    COLLAB_COSINE_WEIGHT,
    COLLAB_JACCARD_WEIGHT,
    MIN_USER_SIMILARITY,
)

logger = logging.getLogger(__name__)


def _non_negative(value: Any, default: float) -> float:
    try:
        return max(0.0, float(value))
    except (TypeError, ValueError):
        return default


@dataclass
class RecommenderWeights:
    """Container for the hybrid scoring constants."""

    similarity_weight: float = CONTENT_SIMILARITY_WEIGHT
    popularity_weight: float = CONTENT_POPULARITY_WEIGHT
    popularity_normalizer: float = POPULARITY_NORMALIZER
    cosine_weight: float = COLLAB_COSINE_WEIGHT
    jaccard_weight: float = COLLAB_JACCARD_WEIGHT
    min_similarity: float = MIN_USER_SIMILARITY
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Clamp values to keep scoring well-defined."""
        self.similarity_weight = _non_negative(self.similarity_weight, CONTENT_SIMILARITY_WEIGHT)
        self.popularity_weight = _non_negative(self.popularity_weight, CONTENT_POPULARITY_WEIGHT)
        self.cosine_weight = _non_negative(self.cosine_weight, COLLAB_COSINE_WEIGHT)
        self.jaccard_weight = _non_negative(self.jaccard_weight, COLLAB_JACCARD_WEIGHT)
        self.min_similarity = _non_negative(self.min_similarity, MIN_USER_SIMILARITY)

        normalizer = _non_negative(self.popularity_normalizer, POPULARITY_NORMALIZER)
        # Divisor must stay positive
        self.popularity_normalizer = normalizer if normalizer > 0 else POPULARITY_NORMALIZER

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "RecommenderWeights":
        known = {f.name for f in fields(cls)}
        unknown = set(payload) - known
        if unknown:
            logger.warning("Ignoring unknown weight keys: %s", ", ".join(sorted(unknown)))
        return cls(**{k: v for k, v in payload.items() if k in known})


def load_recommender_weights(path: str | Path | None = None) -> RecommenderWeights | None:
    """Load weights from disk; return None if missing or invalid."""
    weight_path = Path(path) if path else RECOMMENDER_WEIGHTS_PATH
    if not weight_path.exists():
        logger.debug("Recommender weights file not found at %s; using defaults", weight_path)
        return None

    try:
        payload = json.loads(weight_path.read_text())
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Failed to load recommender weights from %s: %s", weight_path, exc)
        return None

    if not isinstance(payload, dict):
        logger.warning("Recommender weights at %s must be a JSON object", weight_path)
        return None
    return RecommenderWeights.from_dict(payload)


def save_recommender_weights(weights: RecommenderWeights, path: str | Path | None = None) -> Path:
    """Persist weights to disk."""
    weight_path = Path(path) if path else RECOMMENDER_WEIGHTS_PATH
    weight_path.parent.mkdir(parents=True, exist_ok=True)
    weight_path.write_text(json.dumps(weights.to_dict(), indent=2))
    return weight_path
