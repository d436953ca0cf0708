"""Rectangle reconciliation against image bounds.

Crop regions and block-out regions arrive partially specified (missing
fields) or out of range (negative, past the border). normalize_rect()
turns them into rectangles that are safe to index with.

Invariants after normalization (for non-empty bounds):
    - 0 <= x < bounds_width, 0 <= y < bounds_height
    - x + width <= bounds_width, y + height <= bounds_height
    - width, height >= 0

Correction order matters: x/y are range-corrected first, so a too-large x
clamps to the last column and leaves a width of at most 1.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in pixels (top-left origin, +Y down).

    Any field may be None before normalization.
    """

    x: Optional[int] = None
    y: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @classmethod
    def from_any(cls, value: Union["Rect", Mapping[str, Any], Any]) -> "Rect":
        """Build a Rect from a Rect, a mapping, or any object with x/y/width/height."""
        if isinstance(value, Rect):
            return value
        if isinstance(value, Mapping):
            get = value.get
        else:
            def get(key):
                return getattr(value, key, None)
        return cls(get("x"), get("y"), get("width"), get("height"))

    @property
    def area(self) -> int:
        return (self.width or 0) * (self.height or 0)


def normalize_rect(bounds_width: int, bounds_height: int, rect: Any) -> Rect:
    """Clamp a (possibly partial) rectangle to the given bounds.

    Parameters
    ----------
    bounds_width, bounds_height : int
        Image dimensions to clamp against
    rect : Rect | Mapping | object with x/y/width/height
        Rectangle to correct; None fields are filled in

    Returns
    -------
    Rect
        Normalized copy; the input is never modified

    Notes
    -----
    Steps, in order:
        1. Missing x/y → 0
        2. Missing width → bounds_width - x, missing height → bounds_height - y
        3. Negative values → 0
        4. x >= bounds_width → bounds_width - 1 (same for y)
        5. width capped to bounds_width - x (same for height)

    Idempotent: normalize_rect(w, h, normalize_rect(w, h, r)) equals
    normalize_rect(w, h, r).

    Examples
    --------
    >>> normalize_rect(300, 200, Rect(x=1000, y=23, width=42, height=57))
    Rect(x=299, y=23, width=1, height=57)
    """
    rect = Rect.from_any(rect)

    x = 0 if rect.x is None else int(rect.x)
    y = 0 if rect.y is None else int(rect.y)
    width = bounds_width - x if rect.width is None else int(rect.width)
    height = bounds_height - y if rect.height is None else int(rect.height)

    x, y = max(0, x), max(0, y)
    width, height = max(0, width), max(0, height)

    # Empty bounds have no last column/row to clamp onto
    x = max(0, min(x, bounds_width - 1))
    y = max(0, min(y, bounds_height - 1))

    width = max(0, min(width, bounds_width - x))
    height = max(0, min(height, bounds_height - y))

    return Rect(x=x, y=y, width=width, height=height)
