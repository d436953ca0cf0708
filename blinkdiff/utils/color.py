"""Color space conversions and color distance.

Provides:
    - sRGB → linear RGB expansion (exact sRGB transfer function or plain gamma)
    - Linear RGB → CIE XYZ (sRGB primaries, D65)
    - XYZ → CIE L*a*b* (D65 reference white)
    - RGBA → comparison vectors (raw channels or perceptual L*a*b*+alpha)
    - Euclidean color delta between comparison vectors

Used by:
    - Comparator: per-pixel delta against the delta threshold
    - Tests: scalar conversion of single pixels

Tensor conversions operate on torch tensors with channels first,
shape (C, H, W) or (B, C, H, W), in float64 so that the scalar and the
image-level paths produce bit-identical results.

Invariants:
    - Alpha is never gamma-expanded or color-converted; in perceptual mode it
      is carried as a plain normalized value in [0, 1]
    - Raw mode vectors keep the 0-255 channel scale
    - Lab coordinates: L[0,100], a,b approximately [-128,127]
"""

import math
from typing import Optional, Sequence, Tuple

import numpy as np
import torch

# sRGB → XYZ matrix (D65)
SRGB_TO_XYZ = (
    (0.4124564, 0.3575761, 0.1804375),
    (0.2126729, 0.7151522, 0.0721750),
    (0.0193339, 0.1191920, 0.9503041),
)

WHITE_POINTS = {
    "D65": (0.95047, 1.0, 1.08883),
    "D50": (0.96422, 1.0, 0.82521),
}


def srgb_to_linear(img: torch.Tensor) -> torch.Tensor:
    """Convert sRGB [0,1] to linear RGB [0,1].

    Parameters
    ----------
    img : torch.Tensor
        sRGB values, any shape, range [0, 1]

    Returns
    -------
    torch.Tensor
        Linear RGB values, same shape, range [0, 1]

    Notes
    -----
    Uses exact sRGB transfer function (not gamma 2.2 approximation):
        - Linear region for c <= 0.04045: c / 12.92
        - Power region: ((c + 0.055) / 1.055)^2.4
    """
    img = torch.clamp(img, 0.0, 1.0)

    linear_mask = img <= 0.04045
    linear = img / 12.92
    power = torch.pow((img + 0.055) / 1.055, 2.4)

    return torch.where(linear_mask, linear, power)


def gamma_to_linear(img: torch.Tensor, gamma: Sequence[float]) -> torch.Tensor:
    """Expand RGB [0,1] with a plain per-channel power curve.

    Parameters
    ----------
    img : torch.Tensor
        RGB values, shape (3, H, W) or (B, 3, H, W), range [0, 1]
    gamma : Sequence[float]
        Exponent for red, green and blue

    Returns
    -------
    torch.Tensor
        Linear RGB values, same shape
    """
    if img.ndim == 3:
        exponents = torch.tensor(gamma, dtype=img.dtype, device=img.device).view(3, 1, 1)
    elif img.ndim == 4:
        exponents = torch.tensor(gamma, dtype=img.dtype, device=img.device).view(1, 3, 1, 1)
    else:
        raise ValueError(f"Expected shape (3, H, W) or (B, 3, H, W), got {img.shape}")
    return torch.pow(torch.clamp(img, 0.0, 1.0), exponents)


def _split_channels(img: torch.Tensor) -> Tuple[torch.Tensor, ...]:
    if img.ndim == 3:
        return tuple(img[i] for i in range(img.shape[0]))
    elif img.ndim == 4:
        return tuple(img[:, i] for i in range(img.shape[1]))
    raise ValueError(f"Expected shape (C, H, W) or (B, C, H, W), got {img.shape}")


def _stack_channels(channels: Sequence[torch.Tensor], ndim: int) -> torch.Tensor:
    return torch.stack(list(channels), dim=0 if ndim == 3 else 1)


def rgb_to_xyz(rgb: torch.Tensor) -> torch.Tensor:
    """Convert linear RGB to CIE XYZ (D65 illuminant).

    Parameters
    ----------
    rgb : torch.Tensor
        Linear RGB, shape (3, H, W) or (B, 3, H, W), range [0, 1]

    Returns
    -------
    torch.Tensor
        XYZ coordinates, same shape, D65 white point

    Notes
    -----
    Each output is an explicit weighted sum of the three inputs instead of
    a matmul so the summation order never depends on the tensor size.
    """
    r, g, b = _split_channels(rgb)
    xyz = [row[0] * r + row[1] * g + row[2] * b for row in SRGB_TO_XYZ]
    return _stack_channels(xyz, rgb.ndim)


def xyz_to_lab(xyz: torch.Tensor, white_point: str = "D65") -> torch.Tensor:
    """Convert XYZ to CIE L*a*b*.

    Parameters
    ----------
    xyz : torch.Tensor
        XYZ coordinates, shape (3, H, W) or (B, 3, H, W)
    white_point : str
        Reference white point, "D65" (default) or "D50"

    Returns
    -------
    torch.Tensor
        Lab coordinates, same shape
        L: [0, 100], a,b: approximately [-128, 127]

    Notes
    -----
    f(t) = t^(1/3) for t > (6/29)^3, else t / (3 * (6/29)^2) + 4/29.
    """
    if white_point not in WHITE_POINTS:
        raise ValueError(f"Unknown white_point: {white_point}. Use 'D65' or 'D50'.")
    ref = WHITE_POINTS[white_point]

    delta = 6.0 / 29.0
    delta_sq = delta * delta
    delta_cube = delta_sq * delta

    f = []
    for channel, white in zip(_split_channels(xyz), ref):
        t = channel / white
        linear = t / (3.0 * delta_sq) + (4.0 / 29.0)
        power = torch.pow(torch.clamp(t, min=0.0), 1.0 / 3.0)
        f.append(torch.where(t > delta_cube, power, linear))
    fx, fy, fz = f

    L = 116.0 * fy - 16.0
    a = 500.0 * (fx - fy)
    b = 200.0 * (fy - fz)
    return _stack_channels([L, a, b], xyz.ndim)


def rgba_to_perceptual(
    rgba: torch.Tensor,
    gamma: Optional[Sequence[float]] = None,
) -> torch.Tensor:
    """Convert RGBA [0,255] to perceptual vectors (L*, a*, b*, alpha).

    Parameters
    ----------
    rgba : torch.Tensor
        RGBA values, shape (4, H, W), range [0, 255]
    gamma : Optional[Sequence[float]]
        Per-channel power curve replacing the sRGB transfer function

    Returns
    -------
    torch.Tensor
        Shape (4, H, W): L*, a*, b* and alpha normalized to [0, 1]
    """
    normalized = rgba.to(torch.float64) / 255.0
    rgb, alpha = normalized[:3], normalized[3]

    if gamma is None:
        linear = srgb_to_linear(rgb)
    else:
        linear = gamma_to_linear(rgb, gamma)

    lab = xyz_to_lab(rgb_to_xyz(linear))
    return torch.cat([lab, alpha.unsqueeze(0)], dim=0)


def to_color_vectors(
    pixels: np.ndarray,
    perceptual: bool = False,
    gamma: Optional[Sequence[float]] = None,
) -> np.ndarray:
    """Convert an RGBA pixel array into comparison vectors.

    Parameters
    ----------
    pixels : np.ndarray
        RGBA image, shape (H, W, 4), dtype uint8
    perceptual : bool
        Convert to L*a*b*+alpha; raw 0-255 channels otherwise
    gamma : Optional[Sequence[float]]
        Per-channel gamma; implies perceptual conversion

    Returns
    -------
    np.ndarray
        Shape (H, W, 4), float64
    """
    if pixels.ndim != 3 or pixels.shape[2] != 4:
        raise ValueError(f"Expected shape (H, W, 4), got {pixels.shape}")

    if not perceptual and gamma is None:
        return pixels.astype(np.float64)

    chw = torch.from_numpy(np.ascontiguousarray(pixels.transpose(2, 0, 1)))
    vectors = rgba_to_perceptual(chw, gamma=gamma)
    return vectors.permute(1, 2, 0).numpy()


def to_perceptual(
    pixel: Sequence[int],
    gamma: Optional[Sequence[float]] = None,
) -> Tuple[float, float, float, float]:
    """Convert a single RGBA pixel to (L*, a*, b*, alpha).

    Examples
    --------
    >>> L, a, b, alpha = to_perceptual((255, 255, 255, 255))
    >>> round(L)
    100
    """
    arr = np.asarray(pixel, dtype=np.uint8).reshape(1, 1, 4)
    vec = to_color_vectors(arr, perceptual=True, gamma=gamma)[0, 0]
    return tuple(float(v) for v in vec)


def color_delta(v1: Sequence[float], v2: Sequence[float]) -> float:
    """Euclidean distance across all four vector components.

    No weighting and no clamping; alpha contributes at whatever scale the
    vectors were built with.
    """
    return math.sqrt(sum((a - b) ** 2 for a, b in zip(v1, v2)))


def delta_map(vectors_a: np.ndarray, vectors_b: np.ndarray) -> np.ndarray:
    """Per-pixel color delta between two (H, W, 4) vector arrays.

    Returns
    -------
    np.ndarray
        Shape (H, W), float64

    Notes
    -----
    Squares are accumulated component by component, in the same order as
    color_delta(), so both paths agree bit for bit.
    """
    diff = vectors_a - vectors_b
    total = np.zeros(diff.shape[:-1], dtype=np.float64)
    for c in range(diff.shape[-1]):
        total = total + diff[..., c] * diff[..., c]
    return np.sqrt(total)
