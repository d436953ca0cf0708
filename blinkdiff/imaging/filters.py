"""Convenience filters applied to both images before comparison.

Filters operate on the RGB channels only; alpha is never changed. Every
filter rounds half up, matching the blend rule used for painting.

Available names (case-insensitive):
    blur        3x3 box blur; the one-pixel border is left untouched
    grayscale   channel mean (alias: greyscale)
    lightness   (max(R,G,B) + min(R,G,B)) / 2
    luma        Rec. 601: 0.299 R + 0.587 G + 0.114 B
    luminosity  Rec. 709: 0.2126 R + 0.7152 G + 0.0722 B
    sepia       classic sepia matrix, saturated at 255
"""

import logging
from typing import Callable, Dict, Iterable

import numpy as np

from blinkdiff.imaging.png_image import PngImage

logger = logging.getLogger(__name__)

SEPIA = (
    (0.393, 0.769, 0.189),
    (0.349, 0.686, 0.168),
    (0.272, 0.534, 0.131),
)


def _round_half_up(values: np.ndarray) -> np.ndarray:
    return np.floor(values + 0.5)


def _rgb(image: PngImage):
    px = image.pixels.astype(np.float64)
    return px[..., 0], px[..., 1], px[..., 2]


def _set_gray(image: PngImage, gray: np.ndarray) -> None:
    gray = np.clip(_round_half_up(gray), 0, 255).astype(np.uint8)
    for c in range(3):
        image.pixels[..., c] = gray


def blur(image: PngImage) -> None:
    if image.width < 3 or image.height < 3:
        return
    src = image.pixels[..., :3].astype(np.float64)
    total = np.zeros((image.height - 2, image.width - 2, 3), dtype=np.float64)
    for dy in range(3):
        for dx in range(3):
            total += src[dy:dy + image.height - 2, dx:dx + image.width - 2]
    image.pixels[1:-1, 1:-1, :3] = _round_half_up(total / 9.0).astype(np.uint8)


def grayscale(image: PngImage) -> None:
    r, g, b = _rgb(image)
    _set_gray(image, (r + g + b) / 3.0)


def lightness(image: PngImage) -> None:
    rgb = image.pixels[..., :3].astype(np.float64)
    _set_gray(image, (rgb.max(axis=-1) + rgb.min(axis=-1)) / 2.0)


def luma(image: PngImage) -> None:
    r, g, b = _rgb(image)
    _set_gray(image, 0.299 * r + 0.587 * g + 0.114 * b)


def luminosity(image: PngImage) -> None:
    r, g, b = _rgb(image)
    _set_gray(image, 0.2126 * r + 0.7152 * g + 0.0722 * b)


def sepia(image: PngImage) -> None:
    r, g, b = _rgb(image)
    for c, (wr, wg, wb) in enumerate(SEPIA):
        tone = np.minimum(255.0, _round_half_up(wr * r + wg * g + wb * b))
        image.pixels[..., c] = tone.astype(np.uint8)


FILTERS: Dict[str, Callable[[PngImage], None]] = {
    "blur": blur,
    "grayscale": grayscale,
    "greyscale": grayscale,
    "lightness": lightness,
    "luma": luma,
    "luminosity": luminosity,
    "sepia": sepia,
}


def apply_filters(image: PngImage, names: Iterable[str]) -> PngImage:
    """Apply named filters in order (in place).

    Unknown names are logged at WARNING and skipped.
    """
    for name in names or ():
        fn = FILTERS.get(name.strip().lower())
        if fn is None:
            logger.warning(f"Unknown filter: {name}")
            continue
        fn(image)
    return image
