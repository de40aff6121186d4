"""Pair matching — partition a batch of screenshots into dark/light pairs.

Every unordered pair of images is scored (the darker image of the two takes
the dark role). Candidates below the review threshold are dropped. The rest
are taken greedily, skipping any candidate that touches an image already
claimed by a better one. The result is a maximal, conflict-free matching.

Candidates whose luminance gap is under `min_luminance_delta` look like two
screenshots in the same theme. They rank after every candidate with a clear
gap, whatever their score, so a near-duplicate can never take the partner of
a real dark/light pair. Within each group candidates go in descending score
order.

Ordering is fully deterministic: ties in score are broken by (dark id,
light id), never by input or arrival order.
"""
import logging
from collections.abc import Sequence

from models.library import LibraryImage, LibraryPair, ReviewItem, pair_id
from models.matching import MatchConfig, PairCandidate, PairingResult
from pipeline.scoring import order_by_luminance, score_candidate

logger = logging.getLogger(__name__)


def build_library_pairs(
    images: Sequence[LibraryImage],
    config: MatchConfig | None = None,
) -> PairingResult:
    """Match `images` into auto pairs, review items and unmatched ids.

    Unmatched ids keep the input order. An empty outcome is a normal result,
    not an error. Raises ValueError if two images share an id.
    """
    config = config or MatchConfig()
    images_by_id = {image.id: image for image in images}
    if len(images_by_id) != len(images):
        raise ValueError("Image ids must be unique within a matching batch")

    if len(images) < 2:
        return PairingResult(unmatched_image_ids=[image.id for image in images])

    candidates = _collect_candidates(images, config)
    selected = _select_conflict_free(candidates)

    auto_pairs: list[LibraryPair] = []
    review_pairs: list[ReviewItem] = []
    claimed: set[str] = set()

    for candidate in selected:
        dark = images_by_id[candidate.dark_image_id]
        light = images_by_id[candidate.light_image_id]
        claimed.update((dark.id, light.id))

        if _is_auto_pair(candidate, config):
            auto_pairs.append(_to_pair(candidate, dark, light, "high match"))
        else:
            pair = _to_pair(candidate, dark, light, "borderline")
            review_pairs.append(ReviewItem(id=pair.id, pair=pair, reason="borderline"))

    unmatched = [image.id for image in images if image.id not in claimed]

    logger.info(
        "Matched %d images: %d auto, %d review, %d unmatched (%d candidates)",
        len(images), len(auto_pairs), len(review_pairs), len(unmatched), len(candidates),
    )

    return PairingResult(
        auto_pairs=auto_pairs,
        review_pairs=review_pairs,
        unmatched_image_ids=unmatched,
        candidates=candidates,
    )


# ---------------------------------------------------------------------------
# Candidate selection
# ---------------------------------------------------------------------------

def _collect_candidates(
    images: Sequence[LibraryImage],
    config: MatchConfig,
) -> list[PairCandidate]:
    candidates: list[PairCandidate] = []
    for index, first in enumerate(images):
        for second in images[index + 1:]:
            dark, light = order_by_luminance(first, second)
            candidate = score_candidate(dark, light, config)
            if candidate is None or candidate.score < config.review_pair_threshold:
                continue
            candidates.append(candidate)
    return _sort_candidates(candidates, config)


def _sort_candidates(candidates: list[PairCandidate], config: MatchConfig) -> list[PairCandidate]:
    return sorted(
        candidates,
        key=lambda c: (
            _is_ambiguous_theme(c, config),
            -c.score,
            c.dark_image_id,
            c.light_image_id,
        ),
    )


def _select_conflict_free(candidates: list[PairCandidate]) -> list[PairCandidate]:
    """Greedy pass over ranked candidates; each image is used at most once."""
    used: set[str] = set()
    selected: list[PairCandidate] = []
    for candidate in candidates:
        if candidate.dark_image_id in used or candidate.light_image_id in used:
            continue
        selected.append(candidate)
        used.add(candidate.dark_image_id)
        used.add(candidate.light_image_id)
    return selected


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _is_ambiguous_theme(candidate: PairCandidate, config: MatchConfig) -> bool:
    return candidate.luminance_delta < config.min_luminance_delta


def _is_auto_pair(candidate: PairCandidate, config: MatchConfig) -> bool:
    # Too small a luminance gap means the theme split is ambiguous; a human decides.
    return (
        candidate.score >= config.auto_pair_threshold
        and not _is_ambiguous_theme(candidate, config)
    )


def _to_pair(
    candidate: PairCandidate,
    dark: LibraryImage,
    light: LibraryImage,
    reason: str,
) -> LibraryPair:
    return LibraryPair(
        id=pair_id(dark.id, light.id),
        dark_image=dark,
        light_image=light,
        score=round(candidate.score, 4),
        status="auto",
        reason=reason,
        completed_at=None,
    )
