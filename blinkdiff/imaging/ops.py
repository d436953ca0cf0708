"""Geometric image operations used during dimension reconciliation.

Provides:
    - crop(): cut an image down to an already-normalized rectangle
    - clip(): reduce two images to their common top-left area
    - block_out(): paint a normalized rectangle with a blended color
    - copy_image(): copy the overlapping pixels of one image into another

Used by:
    - BlinkDiff engine (crop → block-out → clip → filters)

All operations mutate in place and return the image for chaining.
"""

import logging
from typing import Any, Tuple

from blinkdiff.imaging.png_image import PngImage
from blinkdiff.utils.regions import Rect

logger = logging.getLogger(__name__)


def crop(image: PngImage, rect: Any) -> PngImage:
    """Crop image to rect.

    Parameters
    ----------
    image : PngImage
        Image to crop (modified in place)
    rect : Rect | Mapping | object with x/y/width/height
        Fully specified rectangle; run normalize_rect() first

    Returns
    -------
    PngImage
        The same image instance

    Raises
    ------
    IndexError
        If the rectangle extends past the image
    """
    rect = Rect.from_any(rect)
    if None in (rect.x, rect.y, rect.width, rect.height):
        raise ValueError(f"crop needs a fully specified rectangle, got {rect}")
    image.clip(rect.x, rect.y, rect.width, rect.height)
    logger.debug(f"Cropped to {image.width}x{image.height} at ({rect.x}, {rect.y})")
    return image


def clip(image_a: PngImage, image_b: PngImage) -> Tuple[PngImage, PngImage]:
    """Clip both images to min(width) x min(height), anchored top-left."""
    width = min(image_a.width, image_b.width)
    height = min(image_a.height, image_b.height)
    for image in (image_a, image_b):
        if image.width != width or image.height != height:
            image.clip(0, 0, width, height)
    return image_a, image_b


def block_out(image: PngImage, rect: Any, color: Any) -> PngImage:
    """Paint color over rect using the opacity blend rule.

    rect must already be normalized against this image's bounds; an empty
    rectangle is a no-op.
    """
    rect = Rect.from_any(rect)
    if not rect.area:
        return image
    image.fill_rect(rect.x, rect.y, rect.width, rect.height, color)
    return image


def copy_image(source: PngImage, destination: PngImage) -> PngImage:
    """Overwrite destination pixels with source pixels over their overlap.

    The overlap is the top-left min(width) x min(height) area; pixels of
    destination outside it are left as they are.
    """
    height = min(source.height, destination.height)
    width = min(source.width, destination.width)
    destination.pixels[:height, :width] = source.pixels[:height, :width]
    return destination
