"""Session updates — pure state transitions on a LibrarySession.

Every function returns a new session and leaves its input untouched. Ids that
no longer exist (a pair dissolved while the user was looking at it, a double
click) are not errors: the session comes back unchanged.

Pairs with `completed_at` set represent finished editor work. No function
here reshuffles them implicitly; only an explicit unpair or image deletion
can dissolve one.
"""
import logging
import re
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Literal

from models.library import LibraryImage, LibraryPair, LibrarySession, ReviewItem, pair_id
from models.matching import MatchConfig
from pipeline.matching import build_library_pairs
from pipeline.scoring import order_by_luminance, score_candidate

logger = logging.getLogger(__name__)

RecomputeMode = Literal["unmatched", "open"]

# Score given to a manual pair whose images fail the size check.
_MANUAL_FALLBACK_SCORE = 0.5

_BATCH_TAG_PATTERN = re.compile(r"^batch(\d+)-")


def build_session_from_images(
    images: Sequence[LibraryImage],
    config: MatchConfig | None = None,
) -> LibrarySession:
    pairing = build_library_pairs(images, config)
    return LibrarySession(
        images=list(images),
        pairs=pairing.auto_pairs,
        review_pairs=pairing.review_pairs,
        unmatched_image_ids=pairing.unmatched_image_ids,
    )


# ---------------------------------------------------------------------------
# Review decisions
# ---------------------------------------------------------------------------

def accept_review_pair(session: LibrarySession, review_id: str) -> LibrarySession:
    """Promote a review item to a manual pair."""
    item = session.review_by_id(review_id)
    if item is None:
        logger.debug("accept_review_pair: no review item %s", review_id)
        return session

    pair = item.pair.model_copy(update={"status": "manual", "reason": "manual", "completed_at": None})
    return _rebuild(
        session,
        pairs=[p for p in session.pairs if p.id != pair.id] + [pair],
        review_pairs=[r for r in session.review_pairs if r.id != review_id],
        unmatched_image_ids=_without(session.unmatched_image_ids, pair.image_ids),
    )


def reject_review_pair(session: LibrarySession, review_id: str) -> LibrarySession:
    """Discard a review item; both images become unmatched."""
    item = session.review_by_id(review_id)
    if item is None:
        logger.debug("reject_review_pair: no review item %s", review_id)
        return session

    return _rebuild(
        session,
        review_pairs=[r for r in session.review_pairs if r.id != review_id],
        unmatched_image_ids=_upsert(session.unmatched_image_ids, item.pair.image_ids),
    )


# ---------------------------------------------------------------------------
# Pair edits
# ---------------------------------------------------------------------------

def unpair_library_pair(session: LibrarySession, library_pair_id: str) -> LibrarySession:
    """Dissolve a pair regardless of status or completion."""
    pair = session.pair_by_id(library_pair_id)
    if pair is None:
        logger.debug("unpair_library_pair: no pair %s", library_pair_id)
        return session

    return _rebuild(
        session,
        pairs=[p for p in session.pairs if p.id != library_pair_id],
        unmatched_image_ids=_upsert(session.unmatched_image_ids, pair.image_ids),
    )


def add_manual_pair(
    session: LibrarySession,
    first_image_id: str,
    second_image_id: str,
    config: MatchConfig | None = None,
) -> LibrarySession:
    """Pair two unmatched images by hand; the darker one becomes the dark image."""
    unmatched = set(session.unmatched_image_ids)
    if first_image_id == second_image_id or not {first_image_id, second_image_id} <= unmatched:
        logger.debug("add_manual_pair: %s / %s not both unmatched", first_image_id, second_image_id)
        return session

    dark, light = order_by_luminance(
        session.image_by_id(first_image_id), session.image_by_id(second_image_id)
    )
    candidate = score_candidate(dark, light, config or MatchConfig())
    pair = LibraryPair(
        id=pair_id(dark.id, light.id),
        dark_image=dark,
        light_image=light,
        score=round(candidate.score, 4) if candidate else _MANUAL_FALLBACK_SCORE,
        status="manual",
        reason="manual",
    )
    return _rebuild(
        session,
        pairs=session.pairs + [pair],
        unmatched_image_ids=_without(session.unmatched_image_ids, pair.image_ids),
    )


def mark_pair_completed(
    session: LibrarySession,
    item_id: str,
    completed_at: datetime | None = None,
) -> LibrarySession:
    """Stamp a pair as finished. A review item is promoted to a manual pair first."""
    completed_at = completed_at or datetime.now(timezone.utc)

    pair = session.pair_by_id(item_id)
    if pair is not None:
        # Validate rather than model_copy so a naive timestamp is stored as UTC
        stamped = LibraryPair.model_validate({**dict(pair), "completed_at": completed_at})
        return _rebuild(
            session,
            pairs=[stamped if p.id == item_id else p for p in session.pairs],
        )

    item = session.review_by_id(item_id)
    if item is None:
        logger.debug("mark_pair_completed: no pair or review item %s", item_id)
        return session

    promoted = accept_review_pair(session, item_id)
    return mark_pair_completed(promoted, item_id, completed_at)


def remove_images_from_session(session: LibrarySession, image_ids: Iterable[str]) -> LibrarySession:
    """Delete images; dissolved pairs release their surviving image to unmatched."""
    ids = set(image_ids) & {image.id for image in session.images}
    if not ids:
        return session

    released: list[str] = []
    pairs: list[LibraryPair] = []
    for pair in session.pairs:
        if ids.intersection(pair.image_ids):
            released.extend(i for i in pair.image_ids if i not in ids)
        else:
            pairs.append(pair)

    review_pairs: list[ReviewItem] = []
    for item in session.review_pairs:
        if ids.intersection(item.pair.image_ids):
            released.extend(i for i in item.pair.image_ids if i not in ids)
        else:
            review_pairs.append(item)

    return LibrarySession(
        images=[image for image in session.images if image.id not in ids],
        pairs=pairs,
        review_pairs=review_pairs,
        unmatched_image_ids=_upsert(
            [i for i in session.unmatched_image_ids if i not in ids], released
        ),
    )


# ---------------------------------------------------------------------------
# Recomputation
# ---------------------------------------------------------------------------

def append_and_recompute_session(
    session: LibrarySession,
    new_images: Sequence[LibraryImage],
    mode: RecomputeMode = "unmatched",
    batch_tag: str | None = None,
    config: MatchConfig | None = None,
) -> LibrarySession:
    """Add a batch of images and re-run the matcher over the open pool.

    New images get ids `<batch_tag>-<index>-<original id>`; the default tag
    is `batch<N>` with N one past the highest batch already in the session.

    mode="unmatched"  match only currently unmatched + new images; existing
                      pairs and review items stay as they are.
    mode="open"       dissolve every pair and review item that is not
                      completed and match all of those images with the new
                      ones.

    Completed pairs are never touched in either mode.
    """
    tag = batch_tag or f"batch{_next_batch_index(session)}"
    appended = _retag_images(session, new_images, tag)
    logger.info("Appending %d image(s) as %s (mode=%s)", len(appended), tag, mode)
    return _recompute(session, appended, mode, config)


def recompute_session_pairs(session: LibrarySession, config: MatchConfig | None = None) -> LibrarySession:
    """Re-match every image that is not part of a completed pair."""
    return _recompute(session, [], "open", config)


def _recompute(
    session: LibrarySession,
    appended: list[LibraryImage],
    mode: RecomputeMode,
    config: MatchConfig | None,
) -> LibrarySession:
    if mode == "unmatched":
        kept_pairs = list(session.pairs)
        kept_reviews = list(session.review_pairs)
        open_ids = set(session.unmatched_image_ids)
    elif mode == "open":
        kept_pairs = [p for p in session.pairs if p.completed_at is not None]
        kept_reviews = []
        done_ids = {i for p in kept_pairs for i in p.image_ids}
        open_ids = {image.id for image in session.images if image.id not in done_ids}
    else:
        raise ValueError(f"Unknown recompute mode: {mode!r}. Use unmatched|open.")

    pool = [image for image in session.images if image.id in open_ids] + appended
    pairing = build_library_pairs(pool, config)

    return LibrarySession(
        images=list(session.images) + appended,
        pairs=kept_pairs + pairing.auto_pairs,
        review_pairs=kept_reviews + pairing.review_pairs,
        unmatched_image_ids=pairing.unmatched_image_ids,
    )


def _retag_images(
    session: LibrarySession,
    new_images: Sequence[LibraryImage],
    tag: str,
) -> list[LibraryImage]:
    existing = {image.id for image in session.images}
    retagged: list[LibraryImage] = []
    for index, image in enumerate(new_images):
        base_id = f"{tag}-{index}-{image.id}"
        unique_id = base_id
        attempt = 1
        while unique_id in existing:
            unique_id = f"{base_id}-{attempt}"
            attempt += 1
        existing.add(unique_id)
        retagged.append(image.model_copy(update={"id": unique_id}))
    return retagged


def _next_batch_index(session: LibrarySession) -> int:
    seen = [
        int(match.group(1))
        for image in session.images
        if (match := _BATCH_TAG_PATTERN.match(image.id))
    ]
    return max(seen, default=0) + 1


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _rebuild(session: LibrarySession, **changes) -> LibrarySession:
    """Copy `session` with `changes` applied, re-checking the partition invariants."""
    return LibrarySession(**{**dict(session), **changes})


def _upsert(current: list[str], ids_to_add: Iterable[str]) -> list[str]:
    return list(dict.fromkeys([*current, *ids_to_add]))


def _without(current: list[str], ids_to_drop: Iterable[str]) -> list[str]:
    drop = set(ids_to_drop)
    return [i for i in current if i not in drop]
