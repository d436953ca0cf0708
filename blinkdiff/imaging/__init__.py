"""Pixel buffers and the image collaborators of the comparison engine.

Modules:
    - png_image: PngImage RGBA buffer model + PNG codec (Pillow)
    - ops: crop, clip, block_out, copy_image
    - filters: blur, grayscale, lightness, luma, luminosity, sepia
    - chunks: PNG chunk reader and the stRT structure chunk

Invariants:
    - Buffers are (H, W, 4) uint8, row-major, top-left origin
    - Every paint operation uses the same half-up opacity blend
    - Operations mutate in place; nothing here reads configuration

Used by:
    - diff.engine: loading, dimension reconciliation, output writing
    - diff.comparator / diff.compositor: painting the output canvas
"""

from . import chunks
from . import filters
from . import ops
from . import png_image
from .png_image import PngImage

__all__ = [
    # Modules
    'chunks',
    'filters',
    'ops',
    'png_image',
    # Direct exports
    'PngImage',
]
