#!/usr/bin/env python3
"""Build or extend a screenshot pair library.

Usage:
    python run_library.py                              # ingest screenshots/ and match from scratch
    python run_library.py --append a.png b.png         # add files to the stored session
    python run_library.py --append new/*.png --mode open   # also re-match unfinished pairs
"""
import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from models.events import PipelineEvent
from pipeline import stage1_ingest, stage2_match
from settings import Settings

logger = logging.getLogger("run_library")


def _log_progress(event: PipelineEvent) -> None:
    logger.debug("[%s] %3.0f%%  %s", event.stage, event.progress * 100, event.message)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Pair dark-mode and light-mode screenshots of the same screen.",
    )
    parser.add_argument("--append", nargs="+", type=Path, default=None, metavar="FILE",
                        help="Add these files to the stored session instead of rebuilding it")
    parser.add_argument("--mode", choices=["unmatched", "open"], default="unmatched",
                        help="With --append: re-match only unmatched images (default) "
                             "or every image not in a completed pair")
    args = parser.parse_args(argv)

    settings = Settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.append:
        missing = [p for p in args.append if not p.is_file()]
        if missing:
            logger.error("Not a file: %s", ", ".join(str(p) for p in missing))
            return 2

        logger.info("=== Stage 1: Ingest (%d new files) ===", len(args.append))
        images = stage1_ingest.load_library_images(args.append, settings, on_progress=_log_progress)

        logger.info("=== Stage 2: Append and re-match (%s) ===", args.mode)
        session = stage2_match.append(settings, images, mode=args.mode, on_progress=_log_progress)
    else:
        logger.info("=== Stage 1: Ingest ===")
        images = stage1_ingest.run(settings, on_progress=_log_progress)

        logger.info("=== Stage 2: Match ===")
        session = stage2_match.run(settings, images, on_progress=_log_progress)

    logger.info(
        "=== Done → %d pairs, %d to review, %d unmatched ===",
        len(session.pairs), len(session.review_pairs), len(session.unmatched_image_ids),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
