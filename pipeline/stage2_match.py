"""Stage 2: Matching — fold ingested screenshots into the library session.

`run` builds a fresh session from a full ingest. `append` loads the stored
session and adds a new batch, leaving completed pairs alone.

Reads:  <library_dir>/.cache/session.json   (LibrarySession, append only)
        <library_dir>/matching.yaml          (optional MatchConfig overrides)
Writes: <library_dir>/.cache/session.json
"""
import logging
from collections.abc import Sequence

from models.events import PipelineEvent, ProgressCallback
from models.library import LibraryImage, LibrarySession
from pipeline.session_updates import (
    RecomputeMode,
    append_and_recompute_session,
    build_session_from_images,
)
from settings import Settings
from utils.storage import load_session, save_session

logger = logging.getLogger(__name__)


def run(
    settings: Settings,
    images: Sequence[LibraryImage],
    on_progress: ProgressCallback | None = None,
) -> LibrarySession:
    """Match `images` from scratch and write session.json.

    Returns the new LibrarySession.
    """
    session = build_session_from_images(images, settings.match_config())
    save_session(session, settings.session_path)

    logger.info("Stage 2 complete → %s", settings.session_path)
    _log_session_summary(session)
    _emit(on_progress, "matched", session)
    return session


def append(
    settings: Settings,
    new_images: Sequence[LibraryImage],
    mode: RecomputeMode = "unmatched",
    on_progress: ProgressCallback | None = None,
) -> LibrarySession:
    """Append `new_images` to the stored session and write it back.

    Falls back to a fresh session when nothing usable is stored.
    """
    session = load_session(settings.session_path)
    if session is None:
        logger.warning("No stored session at %s — building a new one.", settings.session_path)
        return run(settings, new_images, on_progress=on_progress)

    session = append_and_recompute_session(
        session, new_images, mode=mode, config=settings.match_config()
    )
    save_session(session, settings.session_path)

    logger.info("Stage 2 (append) complete → %s", settings.session_path)
    _log_session_summary(session)
    _emit(on_progress, "appended", session)
    return session


def _log_session_summary(session: LibrarySession) -> None:
    completed = sum(1 for p in session.pairs if p.completed_at is not None)
    logger.info("  Images:     %d", len(session.images))
    logger.info("  Pairs:      %d (%d completed)", len(session.pairs), completed)
    logger.info("  Review:     %d", len(session.review_pairs))
    logger.info("  Unmatched:  %d", len(session.unmatched_image_ids))
    for item in session.review_pairs:
        logger.info(
            "  ⚠ review %s ↔ %s (score %.2f)",
            item.pair.dark_image.file_name, item.pair.light_image.file_name, item.pair.score,
        )


def _emit(on_progress: ProgressCallback | None, step: str, session: LibrarySession) -> None:
    if on_progress is None:
        return
    on_progress(PipelineEvent(
        stage="match",
        step=step,
        progress=1.0,
        message=(
            f"{len(session.pairs)} pairs, {len(session.review_pairs)} to review, "
            f"{len(session.unmatched_image_ids)} unmatched"
        ),
        payload={
            "pairs": len(session.pairs),
            "review_pairs": len(session.review_pairs),
            "unmatched": len(session.unmatched_image_ids),
        },
    ))
