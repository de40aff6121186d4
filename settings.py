import math
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from models.matching import MatchConfig


class Settings(BaseSettings):
    library_dir: Path = Path("./library")
    thumbnail_size: int = 96
    extraction_workers: int = 4

    # Matcher tuning; defaults mirror MatchConfig, matching.yaml overrides both.
    size_tolerance_ratio: float = 0.03
    aspect_tolerance_ratio: float = 0.03
    auto_pair_threshold: float = 0.8
    review_pair_threshold: float = 0.72
    min_luminance_delta: float = 12.0
    edge_weight: float = 0.7
    size_weight: float = 0.2
    luminance_weight: float = 0.1

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SPL_",
        env_file_encoding="utf-8",
    )

    @field_validator(
        "size_tolerance_ratio",
        "aspect_tolerance_ratio",
        "auto_pair_threshold",
        "review_pair_threshold",
        "edge_weight",
        "size_weight",
        "luminance_weight",
    )
    @classmethod
    def must_be_fraction(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("value must be between 0.0 and 1.0")
        return v

    @field_validator("thumbnail_size")
    @classmethod
    def thumbnail_must_cover_hash_grid(cls, v: int) -> int:
        if v < 16:
            raise ValueError("thumbnail_size must be at least 16")
        return v

    @field_validator("extraction_workers")
    @classmethod
    def workers_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("extraction_workers must be at least 1")
        return v

    @model_validator(mode="after")
    def thresholds_and_weights_consistent(self) -> "Settings":
        if self.review_pair_threshold > self.auto_pair_threshold:
            raise ValueError("review_pair_threshold must not exceed auto_pair_threshold")
        total = self.edge_weight + self.size_weight + self.luminance_weight
        if not math.isclose(total, 1.0, abs_tol=1e-6):
            raise ValueError(f"edge/size/luminance weights must sum to 1.0, got {total:.4f}")
        return self

    @property
    def screenshots_dir(self) -> Path:
        return self.library_dir / "screenshots"

    @property
    def cache_dir(self) -> Path:
        return self.library_dir / ".cache"

    @property
    def session_path(self) -> Path:
        return self.cache_dir / "session.json"

    @property
    def preferences_path(self) -> Path:
        return self.cache_dir / "preferences.json"

    @property
    def match_yaml_path(self) -> Path:
        return self.library_dir / "matching.yaml"

    def match_config(self) -> MatchConfig:
        """Matcher config from these settings, with matching.yaml applied on top."""
        base = {name: getattr(self, name) for name in MatchConfig.model_fields}
        return MatchConfig.load_or_default(self.match_yaml_path, base)
