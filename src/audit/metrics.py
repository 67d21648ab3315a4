"""Image metric primitives over an RGBA8 pixel buffer.

Every function here is pure and vectorized with numpy.  Buffers are
row-major RGBA8 with no row padding; ``len(pixels) == width * height * 4``
is a caller precondition (checked only by a debug assertion in
``compute_image_metrics``).

Metrics:
    - color_histogram: 16 bins per channel, bin = byte // 16
    - transparent_percentage: alpha == 0
    - background_percentage: every RGB channel within 5 of the background
    - edge_density: 4-neighbour luminance gradient above 30 on interior pixels
    - dominant_colors: top 5 quantized colours of pixels with alpha > 128
    - connected_components: flood fill over an 8×8 block grid

The component count is a coarse estimate meant for comparing two renders of
the same scene, not exact pixel connectivity.
"""

import logging
import math
from typing import List, Sequence, Tuple, Union

import numpy as np

from .bundle import HISTOGRAM_BINS, MAX_DOMINANT_COLORS, ColorHistogram, ImageMetrics

logger = logging.getLogger(__name__)

PixelBuffer = Union[bytes, bytearray, memoryview, np.ndarray]

BACKGROUND_TOLERANCE = 5
COMPONENT_TOLERANCE = 10
EDGE_THRESHOLD = 30
ALPHA_OPAQUE_THRESHOLD = 128
COMPONENT_BLOCK_SIZE = 8


def as_rgba(pixels: PixelBuffer) -> np.ndarray:
    """View the buffer as an ``(n, 4)`` uint8 array (trailing bytes dropped)."""
    if isinstance(pixels, np.ndarray):
        flat = np.ascontiguousarray(pixels, dtype=np.uint8).reshape(-1)
    else:
        flat = np.frombuffer(pixels, dtype=np.uint8)
    n = flat.size // 4
    return flat[: n * 4].reshape(n, 4)


def _channel_to_u8(value: float) -> int:
    """Float colour channel → byte: truncate, saturate, NaN → 0."""
    if math.isnan(value):
        return 0
    scaled = value * 255.0
    if scaled <= 0.0:
        return 0
    if scaled >= 255.0:
        return 255
    return int(scaled)


def background_rgb8(background: Sequence[float]) -> Tuple[int, int, int]:
    """Background RGBA in [0, 1] → RGB bytes used by the similarity tests."""
    return (_channel_to_u8(background[0]),
            _channel_to_u8(background[1]),
            _channel_to_u8(background[2]))


def _similar_mask(rgb: np.ndarray, reference: Tuple[int, int, int], tolerance: int) -> np.ndarray:
    diff = np.abs(rgb.astype(np.int16) - np.asarray(reference, dtype=np.int16))
    return np.all(diff <= tolerance, axis=-1)


def _percentage(count: int, pixel_count: int) -> float:
    if pixel_count == 0:
        return 0.0
    return count / pixel_count * 100.0


# ============================================================================
# PRIMITIVES
# ============================================================================

def color_histogram(pixels: PixelBuffer) -> ColorHistogram:
    """16-bin histogram of each channel; each channel sums to the pixel count."""
    rgba = as_rgba(pixels)
    bins = rgba >> 4
    channels = [
        tuple(int(c) for c in np.bincount(bins[:, i], minlength=HISTOGRAM_BINS))
        for i in range(4)
    ]
    return ColorHistogram(red=channels[0], green=channels[1], blue=channels[2], alpha=channels[3])


def transparent_percentage(pixels: PixelBuffer, width: int, height: int) -> float:
    rgba = as_rgba(pixels)
    return _percentage(int(np.count_nonzero(rgba[:, 3] == 0)), width * height)


def background_percentage(
    pixels: PixelBuffer,
    width: int,
    height: int,
    background: Sequence[float],
    tolerance: int = BACKGROUND_TOLERANCE,
) -> float:
    """Percent of pixels whose RGB matches the background (alpha ignored)."""
    rgba = as_rgba(pixels)
    matches = _similar_mask(rgba[:, :3], background_rgb8(background), tolerance)
    return _percentage(int(np.count_nonzero(matches)), width * height)


def edge_density(pixels: PixelBuffer, width: int, height: int) -> float:
    """Fraction of interior pixels whose luminance gradient exceeds the threshold.

    Luminance is the integer mean of R, G and B.  The gradient is
    ``|L(x+1,y) - L(x-1,y)| + |L(x,y+1) - L(x,y-1)|``.  Images smaller than
    3×3 have no interior and return 0.
    """
    if width < 3 or height < 3:
        return 0.0

    rgba = as_rgba(pixels)[: width * height].reshape(height, width, 4)
    lum = rgba[:, :, :3].astype(np.int32).sum(axis=2) // 3

    gx = np.abs(lum[1:-1, 2:] - lum[1:-1, :-2])
    gy = np.abs(lum[2:, 1:-1] - lum[:-2, 1:-1])
    edges = int(np.count_nonzero(gx + gy > EDGE_THRESHOLD))

    return edges / ((width - 2) * (height - 2))


def dominant_colors(pixels: PixelBuffer, limit: int = MAX_DOMINANT_COLORS) -> List[Tuple[int, int, int]]:
    """Most frequent quantized colours among pixels with alpha > 128.

    Colours are quantized to 16 levels per channel and returned at bin
    centre (``level * 16 + 8``), most frequent first; equal counts keep the
    order in which the colours first appear in the buffer.
    """
    rgba = as_rgba(pixels)
    opaque = rgba[rgba[:, 3] > ALPHA_OPAQUE_THRESHOLD]
    if opaque.size == 0:
        return []

    levels = (opaque[:, :3] >> 4).astype(np.int32)
    keys = levels[:, 0] * 256 + levels[:, 1] * 16 + levels[:, 2]
    unique, first_seen, counts = np.unique(keys, return_index=True, return_counts=True)
    order = np.lexsort((first_seen, -counts))[:limit]

    colors = []
    for key in unique[order]:
        key = int(key)
        r, g, b = key >> 8, (key >> 4) & 0xF, key & 0xF
        colors.append((r * 16 + 8, g * 16 + 8, b * 16 + 8))
    return colors


def connected_components(
    pixels: PixelBuffer,
    width: int,
    height: int,
    background: Sequence[float],
    block_size: int = COMPONENT_BLOCK_SIZE,
    tolerance: int = COMPONENT_TOLERANCE,
) -> int:
    """Estimate the number of foreground regions.

    The image is reduced to one sample per ``block_size`` block (the block
    centre, clamped to the image); samples not within ``tolerance`` of the
    background are foreground, and 4-connected foreground regions of that
    grid are counted.
    """
    if width <= 0 or height <= 0:
        return 0

    rgba = as_rgba(pixels)
    grid_w = max(width // block_size, 1)
    grid_h = max(height // block_size, 1)

    xs = np.minimum(np.arange(grid_w) * block_size + block_size // 2, width - 1)
    ys = np.minimum(np.arange(grid_h) * block_size + block_size // 2, height - 1)
    sample = (ys[:, None] * width + xs[None, :]).reshape(-1)

    mask = np.zeros(grid_w * grid_h, dtype=bool)
    in_buffer = sample < rgba.shape[0]
    mask[in_buffer] = ~_similar_mask(rgba[sample[in_buffer], :3], background_rgb8(background), tolerance)

    return _count_regions(mask.reshape(grid_h, grid_w))


def _count_regions(mask: np.ndarray) -> int:
    """Number of 4-connected True regions (iterative flood fill)."""
    grid_h, grid_w = mask.shape
    visited = np.zeros_like(mask)
    regions = 0

    for start_y, start_x in zip(*np.nonzero(mask)):
        if visited[start_y, start_x]:
            continue
        regions += 1
        stack = [(int(start_y), int(start_x))]
        while stack:
            y, x = stack.pop()
            if visited[y, x] or not mask[y, x]:
                continue
            visited[y, x] = True
            if x > 0:
                stack.append((y, x - 1))
            if x < grid_w - 1:
                stack.append((y, x + 1))
            if y > 0:
                stack.append((y - 1, x))
            if y < grid_h - 1:
                stack.append((y + 1, x))

    return regions


# ============================================================================
# COMBINED
# ============================================================================

def compute_image_metrics(
    pixels: PixelBuffer,
    width: int,
    height: int,
    background: Sequence[float],
) -> ImageMetrics:
    """Compute every image metric for one frame.

    Parameters
    ----------
    pixels : bytes-like or np.ndarray
        Row-major RGBA8 buffer of exactly ``width * height * 4`` bytes.
    width, height : int
        Frame size; zero is allowed (all percentages are then 0).
    background : Sequence[float]
        Clear colour RGBA in [0, 1]; only RGB is compared.

    Returns
    -------
    ImageMetrics
    """
    rgba = as_rgba(pixels)
    assert rgba.shape[0] >= width * height, (
        f"pixel buffer holds {rgba.shape[0]} pixels, expected {width}x{height}"
    )

    metrics = ImageMetrics(
        histogram=color_histogram(rgba),
        edge_density=edge_density(rgba, width, height),
        transparent_percentage=transparent_percentage(rgba, width, height),
        background_percentage=background_percentage(rgba, width, height, background),
        connected_components=connected_components(rgba, width, height, background),
        dominant_colors=tuple(dominant_colors(rgba)),
    )
    logger.debug(
        "Image metrics: edges=%.4f transparent=%.1f%% background=%.1f%% components=%d",
        metrics.edge_density, metrics.transparent_percentage,
        metrics.background_percentage, metrics.connected_components,
    )
    return metrics
