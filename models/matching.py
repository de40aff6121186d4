"""Matcher tuning and result models.

`MatchConfig` defaults match the defaults in settings.py. They can be
overridden per library through `matching.yaml` (see `MatchConfig.load`).
"""
import math
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models.library import LibraryImage, LibraryPair, ReviewItem


class MatchConfig(BaseModel):
    """Thresholds and weights for pair scoring.

    score = edge_weight * edge_similarity
          + size_weight * size_compatibility
          + luminance_weight * luminance_contrast

    A candidate at or above `auto_pair_threshold` (and with a luminance gap of
    at least `min_luminance_delta`) is paired automatically; one in
    [review_pair_threshold, auto_pair_threshold) goes to review; anything
    lower is not a candidate.
    """

    model_config = ConfigDict(frozen=True)

    size_tolerance_ratio: float = Field(default=0.03, ge=0.0, le=1.0)
    aspect_tolerance_ratio: float = Field(default=0.03, ge=0.0, le=1.0)
    auto_pair_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    review_pair_threshold: float = Field(default=0.72, ge=0.0, le=1.0)
    min_luminance_delta: float = Field(default=12.0, ge=0.0, le=255.0)
    edge_weight: float = Field(default=0.7, ge=0.0, le=1.0)
    size_weight: float = Field(default=0.2, ge=0.0, le=1.0)
    luminance_weight: float = Field(default=0.1, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def thresholds_and_weights_consistent(self) -> "MatchConfig":
        if self.review_pair_threshold > self.auto_pair_threshold:
            raise ValueError("review_pair_threshold must not exceed auto_pair_threshold")
        total = self.edge_weight + self.size_weight + self.luminance_weight
        if not math.isclose(total, 1.0, abs_tol=1e-6):
            raise ValueError(f"score weights must sum to 1.0, got {total:.4f}")
        return self

    @classmethod
    def load(cls, path: Path, base: dict | None = None) -> "MatchConfig":
        """Load overrides from a YAML file on top of `base` (or the defaults).

        Raises FileNotFoundError if path does not exist.
        """
        import yaml  # lazy, only needed at load time
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        return cls.model_validate({**(base or {}), **data})

    @classmethod
    def load_or_default(cls, path: Path, base: dict | None = None) -> "MatchConfig":
        """Load from path if it exists, otherwise build from `base` alone."""
        if path.exists():
            return cls.load(path, base)
        return cls.model_validate(base or {})


class PairCandidate(BaseModel):
    """Scored dark/light edge considered by the matcher."""

    dark_image_id: str
    light_image_id: str
    edge_similarity: float = Field(ge=0.0, le=1.0)
    luminance_contrast: float = Field(ge=0.0, le=1.0)
    size_compatibility: Literal[0, 1]
    luminance_delta: float = Field(ge=0.0)
    score: float = Field(ge=0.0, le=1.0)


class PairingResult(BaseModel):
    auto_pairs: list[LibraryPair] = Field(default_factory=list)
    review_pairs: list[ReviewItem] = Field(default_factory=list)
    unmatched_image_ids: list[str] = Field(default_factory=list)
    candidates: list[PairCandidate] = Field(default_factory=list)


class LuminanceClassification(BaseModel):
    """Dark/light ordering of two images, or `uncertain` when too close to call."""

    status: Literal["resolved", "uncertain"]
    dark_image: LibraryImage | None = None
    light_image: LibraryImage | None = None
