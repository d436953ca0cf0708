"""Output canvas construction and side-by-side composition.

The output starts as a base layer the size of the compared area:
    - a copy of A when copy_image_a_to_output is set (default)
    - otherwise a copy of B when copy_image_b_to_output is set
    - otherwise a transparent canvas filled with background_color at its
      opacity (left transparent when no background channel is defined)

The comparator paints its overlay directly into that base layer. compose()
then lays out the final image:
    - overlay: the painted base layer alone
    - ltr:     A | overlay | B, left to right
    - ttb:     A / overlay / B, top to bottom
    - auto:    ttb for images wider than tall, ltr otherwise

Side-by-side canvases are transparent; the three parts are placed edge to
edge with no gap, top-left aligned across the composition axis.
"""

import logging
from typing import Optional, Union

from blinkdiff.imaging import ops
from blinkdiff.imaging.png_image import PngImage
from blinkdiff.utils.validators import Composition, DiffConfig

logger = logging.getLogger(__name__)


def resolve_composition(mode: Union[Composition, str], width: int, height: int) -> Composition:
    """Resolve AUTO to a concrete side-by-side layout."""
    mode = Composition(mode)
    if mode is Composition.AUTO:
        return Composition.TOP_TO_BOTTOM if width > height else Composition.LEFT_TO_RIGHT
    return mode


def create_output_canvas(image_a: PngImage, image_b: PngImage, config: DiffConfig) -> Optional[PngImage]:
    """Base layer for the overlay, or None when composition is disabled.

    A and B must already be clipped to the compared size.
    """
    if Composition(config.composition) is Composition.NONE:
        return None

    width = min(image_a.width, image_b.width)
    height = min(image_a.height, image_b.height)
    canvas = PngImage.create_image(width, height)
    if config.copy_image_a_to_output:
        ops.copy_image(image_a, canvas)
    elif config.copy_image_b_to_output:
        ops.copy_image(image_b, canvas)
    else:
        canvas.fill_rect(0, 0, width, height, config.background_color)
    return canvas


def _stack(parts, horizontal: bool) -> PngImage:
    if horizontal:
        width = sum(p.width for p in parts)
        height = max(p.height for p in parts)
    else:
        width = max(p.width for p in parts)
        height = sum(p.height for p in parts)

    canvas = PngImage.create_image(width, height)
    offset = 0
    for part in parts:
        if horizontal:
            canvas.pixels[:part.height, offset:offset + part.width] = part.pixels
            offset += part.width
        else:
            canvas.pixels[offset:offset + part.height, :part.width] = part.pixels
            offset += part.height
    return canvas


def compose(
    image_a: PngImage,
    image_b: PngImage,
    overlay: Optional[PngImage],
    mode: Union[Composition, str],
) -> Optional[PngImage]:
    """Build the final output image from A, B and the painted overlay.

    Returns None when there is no overlay (composition disabled).
    """
    if overlay is None:
        return None

    layout = resolve_composition(mode, overlay.width, overlay.height)
    if layout is Composition.NONE:
        return None
    if layout is Composition.OVERLAY:
        return overlay

    horizontal = layout is Composition.LEFT_TO_RIGHT
    output = _stack([image_a, overlay, image_b], horizontal)
    logger.debug(f"Composed {layout.value} output {output.width}x{output.height}")
    return output
