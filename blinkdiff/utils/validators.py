"""Comparison configuration schema and YAML config loading.

Provides centralized validation for a comparison run using pydantic:
    - ColorSpec: paint colors (mask, shift, background, block-out fill)
    - RegionSpec: partially specified crop rectangles
    - BlockOutSpec: rectangles painted over before comparing
    - DiffConfig: the complete run configuration with explicit defaults

All values are validated at construction and on assignment, so callers
may still adjust a DiffConfig before handing it to the engine and get the
same fail-fast errors.

Units:
    - Geometry: pixels, top-left origin
    - Color channels: [0, 255]; opacity: [0.0, 1.0]

Usage:
    from blinkdiff.utils import validators

    cfg = validators.DiffConfig(threshold=0.01, threshold_type="percent")
    cfg = validators.load_diff_config("diff.yaml")
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from blinkdiff.errors import ConfigurationError

DEFAULT_GAMMA = 2.2


class ThresholdType(str, Enum):
    """How the aggregate threshold is interpreted."""
    PIXEL = "pixel"
    PERCENT = "percent"


class Composition(str, Enum):
    """Layout of the output image."""
    NONE = "none"
    OVERLAY = "overlay"
    AUTO = "auto"
    LEFT_TO_RIGHT = "ltr"
    TOP_TO_BOTTOM = "ttb"


# ============================================================================
# COLORS AND REGIONS
# ============================================================================

class ColorSpec(BaseModel):
    """RGBA paint color with an opacity used for blending.

    Undefined channels (None) are left untouched when painting.
    """
    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    red: Optional[int] = Field(None, ge=0, le=255, description="Red channel")
    green: Optional[int] = Field(None, ge=0, le=255, description="Green channel")
    blue: Optional[int] = Field(None, ge=0, le=255, description="Blue channel")
    alpha: Optional[int] = Field(None, ge=0, le=255, description="Alpha channel")
    opacity: float = Field(1.0, ge=0.0, le=1.0, description="Blend factor against existing pixels")

    @property
    def channels(self) -> Tuple[Optional[int], Optional[int], Optional[int], Optional[int]]:
        return (self.red, self.green, self.blue, self.alpha)

    def is_empty(self) -> bool:
        """True when no channel is defined (painting is a no-op)."""
        return all(c is None for c in self.channels)


class RegionSpec(BaseModel):
    """Rectangle that may be partially specified (e.g. crop regions)."""
    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    x: Optional[int] = Field(None, description="Left edge (px)")
    y: Optional[int] = Field(None, description="Top edge (px)")
    width: Optional[int] = Field(None, description="Width (px)")
    height: Optional[int] = Field(None, description="Height (px)")


class BlockOutSpec(RegionSpec):
    """Region excluded from comparison by painting it over in both images.

    x and y are required; width/height default to the remaining image extent.
    """
    x: int = Field(..., description="Left edge (px)")
    y: int = Field(..., description="Top edge (px)")
    color: ColorSpec = Field(
        default_factory=lambda: ColorSpec(red=0, green=0, blue=0, alpha=255, opacity=1.0)
    )
    only: Optional[Literal["a", "b"]] = Field(
        None, description="Restrict to image A or B; None applies to both"
    )

    def applies_to(self, image_key: str) -> bool:
        return self.only is None or self.only == image_key


# ============================================================================
# DIFF CONFIG
# ============================================================================

class DiffConfig(BaseModel):
    """Configuration of a single comparison run.

    Every field has an explicit default. Defaults for delta and the paint
    colors are calibrated for raw (non-perceptual) channel distances.
    """
    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    # Classification
    threshold: float = Field(500, ge=0.0, description="Pixel count or fraction of compared pixels")
    threshold_type: ThresholdType = Field(ThresholdType.PIXEL)
    delta: float = Field(20, ge=0.0, description="Per-pixel color distance threshold")

    # Matching
    h_shift: int = Field(0, ge=0, description="Horizontal shift tolerance (px)")
    v_shift: int = Field(0, ge=0, description="Vertical shift tolerance (px)")
    perceptual: bool = Field(False, description="Compare in CIE L*a*b* instead of raw RGBA")
    gamma: Optional[float] = Field(None, gt=0.0, description="Gamma for all channels")
    gamma_r: Optional[float] = Field(None, gt=0.0)
    gamma_g: Optional[float] = Field(None, gt=0.0)
    gamma_b: Optional[float] = Field(None, gt=0.0)

    # Output painting
    mask_color: ColorSpec = Field(
        default_factory=lambda: ColorSpec(red=255, green=0, blue=0, alpha=255, opacity=0.7)
    )
    shift_color: ColorSpec = Field(
        default_factory=lambda: ColorSpec(red=200, green=100, blue=0, alpha=255, opacity=0.7)
    )
    background_color: ColorSpec = Field(
        default_factory=lambda: ColorSpec(red=0, green=0, blue=0, alpha=None, opacity=0.6)
    )
    hide_shift: bool = Field(False, description="Paint shifted matches like matches")

    # Preprocessing
    filters: List[str] = Field(default_factory=list)
    block_out: List[BlockOutSpec] = Field(default_factory=list)
    crop_image_a: Optional[RegionSpec] = None
    crop_image_b: Optional[RegionSpec] = None

    # Output
    composition: Composition = Field(Composition.AUTO)
    copy_image_a_to_output: bool = True
    copy_image_b_to_output: bool = False
    image_output_path: Optional[str] = None

    @field_validator('filters', mode='before')
    @classmethod
    def split_filters(cls, v: Any) -> Any:
        """Accept "blur,sepia" as well as a list."""
        if isinstance(v, str):
            return [name.strip() for name in v.split(",") if name.strip()]
        return v

    @field_validator('image_output_path', mode='before')
    @classmethod
    def stringify_path(cls, v: Any) -> Any:
        if isinstance(v, Path):
            return str(v)
        return v

    def gamma_curve(self) -> Optional[Tuple[float, float, float]]:
        """Per-channel gamma, or None for the sRGB transfer function."""
        channels = (self.gamma_r, self.gamma_g, self.gamma_b)
        if self.gamma is None and all(g is None for g in channels):
            return None
        base = self.gamma if self.gamma is not None else DEFAULT_GAMMA
        return tuple(base if g is None else g for g in channels)

    @property
    def uses_perceptual(self) -> bool:
        """Any gamma setting switches on perceptual comparison."""
        return self.perceptual or self.gamma_curve() is not None


def build_diff_config(
    config: Optional[Union[DiffConfig, Dict[str, Any]]] = None,
    **overrides: Any,
) -> DiffConfig:
    """Create a DiffConfig from a model/dict plus keyword overrides.

    Raises
    ------
    ConfigurationError
        If validation fails
    """
    if isinstance(config, DiffConfig):
        data = config.model_dump()
    else:
        data = dict(config or {})
    data.update(overrides)
    try:
        return DiffConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid diff configuration: {e}") from e


def revalidate(config: DiffConfig) -> DiffConfig:
    """Re-run full model validation (e.g. after nested fields were mutated).

    Raises
    ------
    ConfigurationError
        If validation fails
    """
    try:
        return DiffConfig.model_validate(config.model_dump())
    except ValidationError as e:
        raise ConfigurationError(f"Invalid diff configuration: {e}") from e


def load_diff_config(path: Union[str, Path], **overrides: Any) -> DiffConfig:
    """Load and validate a diff config from YAML.

    Parameters
    ----------
    path : Union[str, Path]
        Path to a YAML mapping of DiffConfig fields
    **overrides
        Values taking precedence over the file (e.g. from CLI flags)

    Returns
    -------
    DiffConfig
        Validated configuration

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ConfigurationError
        If the file is not a mapping or validation fails
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Diff config not found: {path}")

    try:
        data = fs.load_yaml(path) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(str(e)) from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Diff config at {path} must be a mapping, got {type(data).__name__}")

    try:
        return build_diff_config(data, **overrides)
    except ConfigurationError as e:
        raise ConfigurationError(f"Diff config validation failed at {path}: {e}") from e
