"""Feature extraction — RGBA pixel buffer to ImageFeatures.

Pure and stateless. The steps:

1) Mean luminance: alpha-weighted Rec. 709 luma over the full-resolution
   buffer. Fully transparent pixels count for nothing.
2) Grayscale thumbnail: luma premultiplied by alpha, resized to a fixed
   THUMBNAIL_SIZE square so every image lands on the same grid.
3) Edge map: 3x3 Sobel gradient magnitude over the thumbnail, clamped to 8 bit.
4) Edge hash: the edge map averaged over a 16x16 grid; a bit is set where the
   cell is busier than the grid average.

A dark-mode and a light-mode render of the same layout have (roughly)
inverted intensities, which flips the sign of every gradient but not its
magnitude. The edge hash therefore depends on where the edges are, not on
the theme.
"""
import numbers

import numpy as np
from PIL import Image

from models.features import EDGE_HASH_GRID_SIZE, THUMBNAIL_SIZE, ImageFeatures

_LUMA_WEIGHTS = np.array([0.2126, 0.7152, 0.0722])


class FeatureExtractionError(ValueError):
    """The pixel buffer does not describe a valid RGBA image."""


def extract_features(
    pixels,
    width: int,
    height: int,
    thumbnail_size: int = THUMBNAIL_SIZE,
) -> ImageFeatures:
    """Compute the feature record for one RGBA image.

    `pixels` is any 8-bit RGBA buffer (bytes, bytearray, memoryview or a uint8
    numpy array) of exactly width * height * 4 values, row-major.

    Raises FeatureExtractionError on zero dimensions or a wrong buffer length.
    """
    width, height = _as_dimensions(width, height)
    rgba = _as_rgba_array(pixels, width, height)

    luma = rgba[..., :3].astype(np.float64) @ _LUMA_WEIGHTS
    alpha = rgba[..., 3].astype(np.float64) / 255.0

    thumbnail = _downsample(luma * alpha, thumbnail_size)
    edge_map = sobel_edge_map(thumbnail)

    return ImageFeatures(
        width=width,
        height=height,
        aspect_ratio=width / height,
        mean_luminance=_mean_luminance(luma, alpha),
        grayscale_thumbnail=thumbnail.tobytes(),
        edge_map=edge_map.tobytes(),
        edge_hash=edge_hash(edge_map),
    )


def sobel_edge_map(gray: np.ndarray) -> np.ndarray:
    """Sobel gradient magnitude of a 2-D uint8 grid. Border pixels stay 0."""
    g = gray.astype(np.int32)
    edges = np.zeros(g.shape, dtype=np.uint8)
    h, w = g.shape
    if h < 3 or w < 3:
        return edges

    top_left, top, top_right = g[:-2, :-2], g[:-2, 1:-1], g[:-2, 2:]
    left, right = g[1:-1, :-2], g[1:-1, 2:]
    bottom_left, bottom, bottom_right = g[2:, :-2], g[2:, 1:-1], g[2:, 2:]

    gx = -top_left + top_right - 2 * left + 2 * right - bottom_left + bottom_right
    gy = -top_left - 2 * top - top_right + bottom_left + 2 * bottom + bottom_right
    magnitude = np.rint(np.sqrt(gx * gx + gy * gy))
    edges[1:-1, 1:-1] = np.clip(magnitude, 0, 255).astype(np.uint8)
    return edges


def edge_hash(edge_map: np.ndarray, grid_size: int = EDGE_HASH_GRID_SIZE) -> bytes:
    """Threshold per-cell mean edge strength against the mean over all cells.

    Returns grid_size² bits packed MSB-first.
    """
    h, w = edge_map.shape
    cells = np.zeros((grid_size, grid_size), dtype=np.float64)
    for gy in range(grid_size):
        y_start, y_end = _cell_bounds(gy, h, grid_size)
        for gx in range(grid_size):
            x_start, x_end = _cell_bounds(gx, w, grid_size)
            block = edge_map[y_start:y_end, x_start:x_end]
            cells[gy, gx] = block.mean() if block.size else 0.0

    bits = (cells > cells.mean()).reshape(-1)
    return np.packbits(bits).tobytes()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _as_dimensions(width, height) -> tuple[int, int]:
    # Integral covers numpy integer scalars such as an ndarray's shape entries
    if not isinstance(width, numbers.Integral) or not isinstance(height, numbers.Integral):
        raise FeatureExtractionError(f"Image dimensions must be integers, got {width!r}x{height!r}")
    if width < 1 or height < 1:
        raise FeatureExtractionError(f"Image dimensions must be positive integers, got {width}x{height}")
    return int(width), int(height)


def _as_rgba_array(pixels, width: int, height: int) -> np.ndarray:
    if isinstance(pixels, np.ndarray):
        flat = pixels.astype(np.uint8, copy=False).reshape(-1)
    else:
        flat = np.frombuffer(bytes(pixels), dtype=np.uint8)

    expected = width * height * 4
    if flat.size != expected:
        raise FeatureExtractionError(
            f"RGBA buffer for {width}x{height} must hold {expected} bytes, got {flat.size}"
        )
    return flat.reshape(height, width, 4)


def _mean_luminance(luma: np.ndarray, alpha: np.ndarray) -> float:
    coverage = float(alpha.sum())
    if coverage <= 0.0:
        return 0.0
    # Clamp float drift at the extremes (e.g. pure white -> 255.00000000000003)
    return min(255.0, max(0.0, float((luma * alpha).sum()) / coverage))


def _downsample(gray: np.ndarray, size: int) -> np.ndarray:
    gray_u8 = np.clip(np.rint(gray), 0, 255).astype(np.uint8)
    img = Image.fromarray(gray_u8)
    if img.size != (size, size):
        img = img.resize((size, size), resample=Image.Resampling.BILINEAR)
    return np.asarray(img, dtype=np.uint8)


def _cell_bounds(index: int, length: int, grid_size: int) -> tuple[int, int]:
    start = (index * length) // grid_size
    end = max(start + 1, ((index + 1) * length) // grid_size)
    return start, min(end, length)
