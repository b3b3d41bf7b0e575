import os
from dataclasses import dataclass
from functools import lru_cache

from .credibility.scorer import (
    DEFAULT_SOURCE_WEIGHT,
    DEFAULT_SPATIAL_WEIGHT,
    DEFAULT_TEMPORAL_WEIGHT,
    DEFAULT_THRESHOLD,
    ScoringWeights,
)
from .validation import DEFAULT_CLOCK_SKEW_SECONDS
from .verification.runner import DEFAULT_CALL_TIMEOUT_SECONDS, DEFAULT_MAX_IN_FLIGHT


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be {cast.__name__}, got {raw!r}") from e


@dataclass
class Settings:
    """Engine settings loaded from GEOSTAMP_* environment variables with safe defaults."""

    log_level: str = "INFO"
    max_in_flight: int = DEFAULT_MAX_IN_FLIGHT
    call_timeout: float = DEFAULT_CALL_TIMEOUT_SECONDS
    clock_skew_seconds: int = DEFAULT_CLOCK_SKEW_SECONDS
    spatial_weight: float = DEFAULT_SPATIAL_WEIGHT
    temporal_weight: float = DEFAULT_TEMPORAL_WEIGHT
    source_weight: float = DEFAULT_SOURCE_WEIGHT
    threshold: float = DEFAULT_THRESHOLD

    def __post_init__(self):
        if self.max_in_flight < 1:
            raise ValueError(f"max_in_flight must be >= 1, got {self.max_in_flight}")
        if self.call_timeout <= 0:
            raise ValueError(f"call_timeout must be > 0, got {self.call_timeout}")
        if self.clock_skew_seconds < 0:
            raise ValueError(f"clock_skew_seconds must be >= 0, got {self.clock_skew_seconds}")
        # Weights are checked together
        self.scoring_weights()

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings from environment variables."""
        return cls(
            log_level=os.getenv("GEOSTAMP_LOG_LEVEL", cls.log_level),
            max_in_flight=_env_number("GEOSTAMP_MAX_IN_FLIGHT", cls.max_in_flight, int),
            call_timeout=_env_number("GEOSTAMP_CALL_TIMEOUT", cls.call_timeout, float),
            clock_skew_seconds=_env_number("GEOSTAMP_CLOCK_SKEW", cls.clock_skew_seconds, int),
            spatial_weight=_env_number("GEOSTAMP_WEIGHT_SPATIAL", cls.spatial_weight, float),
            temporal_weight=_env_number("GEOSTAMP_WEIGHT_TEMPORAL", cls.temporal_weight, float),
            source_weight=_env_number("GEOSTAMP_WEIGHT_SOURCE", cls.source_weight, float),
            threshold=_env_number("GEOSTAMP_THRESHOLD", cls.threshold, float),
        )

    def scoring_weights(self) -> ScoringWeights:
        return ScoringWeights(
            spatial=self.spatial_weight,
            temporal=self.temporal_weight,
            source=self.source_weight,
            threshold=self.threshold,
        )


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings.from_env()
