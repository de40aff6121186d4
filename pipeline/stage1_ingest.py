"""Stage 1: Ingest — decode screenshots and extract their features.

Pillow decodes each file to an RGBA buffer (EXIF orientation applied), which
is handed to the pure feature extractor. Extraction runs in a thread pool;
results are merged back in file order, because the matcher's tie-break
depends on a stable order, not on which worker finished first.

Reads:  <library_dir>/screenshots/
Writes: nothing (the match stage persists the session)
"""
import concurrent.futures
import logging
from collections.abc import Sequence
from pathlib import Path

from PIL import Image, ImageOps

from models.events import PipelineEvent, ProgressCallback
from models.library import LibraryImage
from pipeline.features import extract_features
from settings import Settings

logger = logging.getLogger(__name__)

_SCREENSHOT_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".webp", ".bmp", ".gif"})


def run(settings: Settings, on_progress: ProgressCallback | None = None) -> list[LibraryImage]:
    """Ingest every screenshot in the library's screenshots directory.

    Returns LibraryImages in sorted file-name order. Undecodable files are
    skipped with a warning.
    """
    paths = inventory_screenshots(settings)
    images = load_library_images(paths, settings, on_progress=on_progress)

    logger.info("Stage 1 complete → %d of %d screenshots ingested", len(images), len(paths))
    return images


def inventory_screenshots(settings: Settings) -> list[Path]:
    if not settings.screenshots_dir.exists():
        logger.warning("Screenshots directory not found: %s", settings.screenshots_dir)
        return []

    return sorted(
        f for f in settings.screenshots_dir.iterdir()
        if f.is_file() and f.suffix.lower() in _SCREENSHOT_EXTENSIONS
    )


def load_library_images(
    paths: Sequence[Path],
    settings: Settings,
    on_progress: ProgressCallback | None = None,
) -> list[LibraryImage]:
    """Decode and featurise `paths`, keeping their order. Failures are skipped."""
    total = len(paths)
    if total == 0:
        return []

    def work(item: tuple[int, Path]) -> LibraryImage | None:
        index, path = item
        return _load_image(path, index, settings)

    indexed = list(enumerate(paths, start=1))
    images: list[LibraryImage] = []
    _emit(on_progress, 0, total, None)

    if settings.extraction_workers == 1:
        results = map(work, indexed)
        for processed, (path, image) in enumerate(zip(paths, results), start=1):
            _collect(images, image, path)
            _emit(on_progress, processed, total, path)
        return images

    with concurrent.futures.ThreadPoolExecutor(max_workers=settings.extraction_workers) as ex:
        # Executor.map yields in submission order, whatever order workers finish in.
        for processed, (path, image) in enumerate(zip(paths, ex.map(work, indexed)), start=1):
            _collect(images, image, path)
            _emit(on_progress, processed, total, path)

    return images


# ---------------------------------------------------------------------------
# Per-file work
# ---------------------------------------------------------------------------

def _load_image(path: Path, index: int, settings: Settings) -> LibraryImage | None:
    try:
        pixels, width, height = decode_rgba(path)
        features = extract_features(pixels, width, height, thumbnail_size=settings.thumbnail_size)
    except Exception as exc:
        logger.warning("  [%03d] %s — SKIPPED: %s", index, path.name, exc)
        return None

    return LibraryImage(
        id=f"img_{index:03d}",
        file_name=path.name,
        path=_relative_to_library(path, settings.library_dir),
        features=features,
    )


def decode_rgba(path: Path) -> tuple[bytes, int, int]:
    """Decode an image file to (RGBA bytes, width, height), right side up."""
    with Image.open(path) as img:
        corrected = ImageOps.exif_transpose(img)
        rgba = corrected.convert("RGBA")
    return rgba.tobytes(), rgba.width, rgba.height


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _collect(images: list[LibraryImage], image: LibraryImage | None, path: Path) -> None:
    if image is None:
        return
    images.append(image)
    logger.debug(
        "  [%s] %s — %dx%d, luminance %.1f",
        image.id, path.name, image.features.width, image.features.height,
        image.features.mean_luminance,
    )


def _emit(on_progress: ProgressCallback | None, processed: int, total: int, path: Path | None) -> None:
    if on_progress is None:
        return
    on_progress(PipelineEvent(
        stage="ingest",
        step="extracting_features",
        progress=processed / total,
        message=f"Analysed {processed} of {total} screenshots",
        payload={"file_name": path.name} if path is not None else None,
    ))


def _relative_to_library(path: Path, library_dir: Path) -> Path:
    """Path relative to the library, falling back to the absolute path outside it."""
    try:
        return path.resolve().relative_to(library_dir.resolve())
    except ValueError:
        return path.resolve()
