"""Pair scoring — how likely two screenshots are the same UI in opposite themes.

Three signals are fused by a weighted sum (weights in MatchConfig, sum 1):

  Edge similarity      1 - hamming(edge_hash_a, edge_hash_b) / bits. Dominant:
                       the same layout yields nearly the same edge hash in
                       either theme.
  Size compatibility   1 when width, height and aspect ratio agree within
                       tolerance. Otherwise the pair is disqualified outright.
  Luminance contrast   |ΔL| / 255. A real dark/light pair has a large gap in
                       mean luminance; two same-theme duplicates do not.
"""
from models.features import ImageFeatures
from models.library import LibraryImage
from models.matching import LuminanceClassification, MatchConfig, PairCandidate

# Mean-luminance gap below which two images cannot be told apart by theme.
LUMINANCE_CONFIDENCE_THRESHOLD = 12.0

_DEFAULT_CONFIG = MatchConfig()


def hamming_distance(first: bytes, second: bytes) -> int:
    """Number of differing bits between two equal-length byte strings."""
    if len(first) != len(second):
        raise ValueError(f"Cannot compare hashes of different length ({len(first)} vs {len(second)})")
    x = int.from_bytes(first, "big") ^ int.from_bytes(second, "big")
    return x.bit_count()


def edge_similarity(first: bytes, second: bytes) -> float:
    bits = len(first) * 8
    if bits == 0:
        return 1.0
    return 1.0 - hamming_distance(first, second) / bits


def relative_difference(a: float, b: float) -> float:
    baseline = max(abs(a), abs(b), 1.0)
    return abs(a - b) / baseline


def is_dimension_compatible(
    first: ImageFeatures,
    second: ImageFeatures,
    config: MatchConfig = _DEFAULT_CONFIG,
) -> bool:
    return (
        relative_difference(first.width, second.width) <= config.size_tolerance_ratio
        and relative_difference(first.height, second.height) <= config.size_tolerance_ratio
        and relative_difference(first.aspect_ratio, second.aspect_ratio) <= config.aspect_tolerance_ratio
    )


def score_pair(
    first: ImageFeatures,
    second: ImageFeatures,
    config: MatchConfig = _DEFAULT_CONFIG,
) -> float:
    """Match score in [0, 1]; 0.0 for size-incompatible images. Symmetric."""
    parts = _score_parts(first, second, config)
    return parts[-1] if parts is not None else 0.0


def score_candidate(
    dark_image: LibraryImage,
    light_image: LibraryImage,
    config: MatchConfig = _DEFAULT_CONFIG,
) -> PairCandidate | None:
    """Score a dark/light pair with its sub-scores. None when size-incompatible."""
    parts = _score_parts(dark_image.features, light_image.features, config)
    if parts is None:
        return None
    edge, contrast, delta, score = parts
    return PairCandidate(
        dark_image_id=dark_image.id,
        light_image_id=light_image.id,
        edge_similarity=edge,
        luminance_contrast=contrast,
        size_compatibility=1,
        luminance_delta=delta,
        score=score,
    )


def order_by_luminance(first: LibraryImage, second: LibraryImage) -> tuple[LibraryImage, LibraryImage]:
    """Return (dark, light). Equal luminance falls back to lexical id order."""
    key_first = (first.features.mean_luminance, first.id)
    key_second = (second.features.mean_luminance, second.id)
    return (first, second) if key_first <= key_second else (second, first)


def classify_by_luminance(
    first: LibraryImage,
    second: LibraryImage,
    threshold: float = LUMINANCE_CONFIDENCE_THRESHOLD,
) -> LuminanceClassification:
    """Decide which of two images is the dark one, for direct two-image loads."""
    delta = abs(first.features.mean_luminance - second.features.mean_luminance)
    if delta < threshold:
        return LuminanceClassification(status="uncertain")
    dark, light = order_by_luminance(first, second)
    return LuminanceClassification(status="resolved", dark_image=dark, light_image=light)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _score_parts(
    first: ImageFeatures,
    second: ImageFeatures,
    config: MatchConfig,
) -> tuple[float, float, float, float] | None:
    """(edge_similarity, luminance_contrast, luminance_delta, score), or None."""
    if not is_dimension_compatible(first, second, config):
        return None

    edge = edge_similarity(first.edge_hash, second.edge_hash)
    delta = abs(first.mean_luminance - second.mean_luminance)
    contrast = max(0.0, min(1.0, delta / 255.0))
    score = (
        config.edge_weight * edge
        + config.size_weight * 1.0
        + config.luminance_weight * contrast
    )
    return edge, contrast, delta, max(0.0, min(1.0, score))
