"""RGBA pixel buffer with PNG encode/decode.

PngImage owns a dense (H, W, 4) uint8 array in row-major order. The flat
view `data` follows the classic layout index(x, y) = (width * y + x) * 4,
so code written against byte offsets and code written against numpy
coordinates address the same memory.

Crop/clip/paint operations mutate the image in place; the engine holds
exactly one reference per working image, so no aliasing is needed.

Encoding and decoding go through Pillow; any format Pillow reads is
accepted and converted to 8-bit RGBA.
"""

import io
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import numpy as np
from PIL import Image

from blinkdiff.utils import fs

logger = logging.getLogger(__name__)

Channels = Tuple[Optional[int], Optional[int], Optional[int], Optional[int]]
CHANNEL_NAMES = ("red", "green", "blue", "alpha")


def resolve_color(color: Any) -> Tuple[Channels, float]:
    """Split a paint color into (channels, opacity).

    Accepts a ColorSpec (or any object with red/green/blue/alpha/opacity
    attributes) or a mapping with the same keys. Missing channels are None,
    missing opacity is 1.0.
    """
    if isinstance(color, Mapping):
        get = color.get
    else:
        def get(key):
            return getattr(color, key, None)
    channels = tuple(get(name) for name in CHANNEL_NAMES)
    opacity = get("opacity")
    return channels, 1.0 if opacity is None else float(opacity)


class PngImage:
    """Mutable 8-bit RGBA image.

    Parameters
    ----------
    pixels : np.ndarray
        Shape (H, W, 4) RGBA or (H, W, 3) RGB (alpha is filled with 255)

    Raises
    ------
    ValueError
        On any other shape, or a dtype other than uint8 (no implicit casts)
    """

    def __init__(self, pixels: np.ndarray):
        pixels = np.asarray(pixels)
        if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
            raise ValueError(f"Expected shape (H, W, 4) or (H, W, 3), got {pixels.shape}")
        if pixels.dtype != np.uint8:
            raise ValueError(f"Expected uint8 pixels, got {pixels.dtype}")
        if pixels.shape[2] == 3:
            alpha = np.full(pixels.shape[:2] + (1,), 255, dtype=np.uint8)
            pixels = np.concatenate([pixels, alpha], axis=2)
        self._pixels = np.ascontiguousarray(pixels, dtype=np.uint8)

    # ------------------------------------------------------------------
    # Geometry and raw access
    # ------------------------------------------------------------------

    @property
    def width(self) -> int:
        return self._pixels.shape[1]

    @property
    def height(self) -> int:
        return self._pixels.shape[0]

    @property
    def pixels(self) -> np.ndarray:
        """(H, W, 4) uint8 view of the buffer."""
        return self._pixels

    @property
    def data(self) -> np.ndarray:
        """Flat uint8 view of the buffer (length width * height * 4)."""
        return self._pixels.reshape(-1)

    def get_index(self, x: int, y: int) -> int:
        """Offset of pixel (x, y) in the flat buffer."""
        return (self.width * y + x) * 4

    def get_at(self, x: int, y: int) -> int:
        """Pixel packed as a 32-bit RGBA integer (red in the high byte)."""
        r, g, b, a = (int(v) for v in self._pixels[y, x])
        return (r << 24) | (g << 16) | (b << 8) | a

    def get_pixel(self, x: int, y: int) -> Dict[str, int]:
        r, g, b, a = (int(v) for v in self._pixels[y, x])
        return {"red": r, "green": g, "blue": b, "alpha": a}

    def set_pixel(self, x: int, y: int, red: int, green: int, blue: int, alpha: int) -> None:
        self._pixels[y, x] = (red, green, blue, alpha)

    def set_at(self, x: int, y: int, color: Any) -> None:
        """Write the defined channels of color at (x, y), without blending."""
        channels, _ = resolve_color(color)
        for idx, value in enumerate(channels):
            if value is not None:
                self._pixels[y, x, idx] = value

    # ------------------------------------------------------------------
    # Painting
    # ------------------------------------------------------------------

    def paint(self, mask: np.ndarray, color: Any) -> None:
        """Paint color over every pixel where mask is True.

        The mask covers the top-left (mask.shape) region of the image.
        With opacity < 1 each defined channel becomes
        round(existing * (1 - opacity) + value * opacity), rounding halves
        up; otherwise the value is written directly. Undefined channels are
        never touched.
        """
        channels, opacity = resolve_color(color)
        if all(c is None for c in channels):
            return

        rows, cols = mask.shape
        region = self._pixels[:rows, :cols]
        for idx, value in enumerate(channels):
            if value is None:
                continue
            plane = region[..., idx]
            if opacity < 1.0:
                existing = plane[mask].astype(np.float64)
                blended = np.floor(existing * (1.0 - opacity) + value * opacity + 0.5)
                plane[mask] = blended.astype(np.uint8)
            else:
                plane[mask] = value

    def fill_rect(self, x: int, y: int, width: int, height: int, color: Any) -> None:
        """Paint a rectangle (same blend rule as paint())."""
        if width <= 0 or height <= 0:
            return
        mask = np.zeros((y + height, x + width), dtype=bool)
        mask[y:y + height, x:x + width] = True
        self.paint(mask, color)

    # ------------------------------------------------------------------
    # Shape changes
    # ------------------------------------------------------------------

    def clip(self, x: int, y: int, width: int, height: int) -> None:
        """Replace the buffer with the given sub-rectangle (in place).

        Raises
        ------
        IndexError
            If the rectangle does not lie inside the image
        """
        if (x < 0 or y < 0 or width < 0 or height < 0
                or x + width > self.width or y + height > self.height):
            raise IndexError(
                f"Region (x={x}, y={y}, width={width}, height={height}) "
                f"out of bounds for {self.width}x{self.height} image"
            )
        self._pixels = np.ascontiguousarray(self._pixels[y:y + height, x:x + width])

    def copy(self) -> "PngImage":
        return PngImage(self._pixels.copy())

    # ------------------------------------------------------------------
    # Construction and codec
    # ------------------------------------------------------------------

    @classmethod
    def create_image(cls, width: int, height: int) -> "PngImage":
        """New transparent black image."""
        return cls(np.zeros((height, width, 4), dtype=np.uint8))

    @classmethod
    def from_bytes(cls, data: bytes) -> "PngImage":
        """Decode an encoded image (PNG or anything Pillow reads).

        Raises
        ------
        PIL.UnidentifiedImageError
            If the bytes are not a decodable image
        """
        with Image.open(io.BytesIO(data)) as img:
            rgba = img.convert("RGBA")
        return cls(np.array(rgba, dtype=np.uint8))

    @classmethod
    def read_image(cls, path: Union[str, Path]) -> "PngImage":
        """Read and decode an image file.

        Raises
        ------
        FileNotFoundError
            If path doesn't exist
        """
        path = Path(path)
        logger.debug(f"Reading image {path}")
        return cls.from_bytes(path.read_bytes())

    def to_bytes(self) -> bytes:
        """Encode as PNG."""
        buffer = io.BytesIO()
        Image.fromarray(self._pixels).save(buffer, format="PNG")
        return buffer.getvalue()

    def write_image(self, path: Union[str, Path]) -> None:
        """Encode as PNG and write atomically."""
        fs.atomic_write_bytes(path, self.to_bytes())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PngImage):
            return NotImplemented
        return self._pixels.shape == other._pixels.shape and np.array_equal(self._pixels, other._pixels)

    __hash__ = None

    def __repr__(self) -> str:
        return f"PngImage({self.width}x{self.height})"
