"""Shift-tolerant per-pixel comparison.

Each pixel (x, y) of the compared area is classified as one of:
    - match:          delta(A[x, y], B[x, y]) <= delta_threshold
    - shifted match:  no match, but some offset (dx, dy) within the shift
                      window gives delta(A[x, y], B[x + dx, y + dy]) <= threshold
    - difference:     neither

Only differences are counted. When an output canvas is given, matches are
painted with the background color, shifted matches with the shift color
(or the background color when shifts are hidden) and differences with the
mask color, all through PngImage.paint()'s opacity blend.

Offsets are scanned row-major (dy outer, dx inner) skipping (0, 0) and any
offset that lands outside the compared area. The search is vectorized per
offset over the still-unmatched pixels; since a pixel only needs to know
whether any offset matches, the outcome is the same as a per-pixel
first-match scan.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Sequence, Tuple

import numpy as np

from blinkdiff.imaging.png_image import PngImage
from blinkdiff.utils.color import delta_map, to_color_vectors

logger = logging.getLogger(__name__)


@dataclass
class PixelClassification:
    """Boolean (height, width) masks; every pixel is in exactly one of them."""

    matched: np.ndarray
    shifted: np.ndarray
    different: np.ndarray

    @property
    def differences(self) -> int:
        return int(np.count_nonzero(self.different))

    @property
    def shifted_count(self) -> int:
        return int(np.count_nonzero(self.shifted))


def shift_offsets(h_shift: int, v_shift: int) -> Iterator[Tuple[int, int]]:
    """Yield (dx, dy) in scan order: dy from -v_shift, then dx from -h_shift."""
    for dy in range(-v_shift, v_shift + 1):
        for dx in range(-h_shift, h_shift + 1):
            if dx == 0 and dy == 0:
                continue
            yield dx, dy


def _overlap(offset: int, extent: int) -> Tuple[slice, slice]:
    """Slices of A and of B along one axis for which index + offset stays in range."""
    start = max(0, -offset)
    stop = min(extent, extent - offset)
    return slice(start, stop), slice(start + offset, stop + offset)


def classify_pixels(
    image_a: PngImage,
    image_b: PngImage,
    delta_threshold: float,
    width: int,
    height: int,
    h_shift: int = 0,
    v_shift: int = 0,
    *,
    perceptual: bool = False,
    gamma: Optional[Sequence[float]] = None,
) -> PixelClassification:
    """Classify every pixel of the top-left width x height area.

    Both images must be at least width x height.
    """
    if width <= 0 or height <= 0:
        empty = np.zeros((max(height, 0), max(width, 0)), dtype=bool)
        return PixelClassification(empty, empty.copy(), empty.copy())

    vectors_a = to_color_vectors(image_a.pixels[:height, :width], perceptual=perceptual, gamma=gamma)
    vectors_b = to_color_vectors(image_b.pixels[:height, :width], perceptual=perceptual, gamma=gamma)

    matched = delta_map(vectors_a, vectors_b) <= delta_threshold
    shifted = np.zeros_like(matched)

    if h_shift > 0 or v_shift > 0:
        pending = ~matched
        for dx, dy in shift_offsets(h_shift, v_shift):
            if not pending.any():
                break
            rows_a, rows_b = _overlap(dy, height)
            cols_a, cols_b = _overlap(dx, width)
            if rows_a.start >= rows_a.stop or cols_a.start >= cols_a.stop:
                continue
            window = pending[rows_a, cols_a]
            hit = delta_map(vectors_a[rows_a, cols_a], vectors_b[rows_b, cols_b]) <= delta_threshold
            hit &= window
            shifted[rows_a, cols_a] |= hit
            pending[rows_a, cols_a] = window & ~hit

    different = ~(matched | shifted)
    return PixelClassification(matched, shifted, different)


def pixel_compare(
    image_a: PngImage,
    image_b: PngImage,
    image_output: Optional[PngImage],
    delta_threshold: float,
    width: int,
    height: int,
    mask_color: Any,
    shift_color: Any,
    background_color: Any,
    h_shift: int = 0,
    v_shift: int = 0,
    *,
    hide_shift: bool = False,
    perceptual: bool = False,
    gamma: Optional[Sequence[float]] = None,
) -> int:
    """Count differing pixels, painting image_output when given.

    Parameters
    ----------
    image_a, image_b : PngImage
        Images to compare, at least width x height
    image_output : Optional[PngImage]
        Canvas to paint (at least width x height); None to only count
    delta_threshold : float
        Maximum color delta still considered a match
    width, height : int
        Compared area (top-left anchored); 0 yields 0 differences
    mask_color, shift_color, background_color : ColorSpec | Mapping
        Paint colors for differences, shifted matches and matches
    h_shift, v_shift : int
        Shift tolerance in pixels
    hide_shift : bool
        Paint shifted matches with background_color
    perceptual, gamma
        Distance mode, see utils.color.to_color_vectors()

    Returns
    -------
    int
        Number of differences
    """
    result = classify_pixels(
        image_a, image_b, delta_threshold, width, height, h_shift, v_shift,
        perceptual=perceptual, gamma=gamma,
    )

    if image_output is not None and result.matched.size:
        image_output.paint(result.matched, background_color)
        image_output.paint(result.shifted, background_color if hide_shift else shift_color)
        image_output.paint(result.different, mask_color)

    logger.debug(
        f"Compared {width}x{height}: {result.differences} differences, "
        f"{result.shifted_count} shifted matches"
    )
    return result.differences
