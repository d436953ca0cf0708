"""blink-diff: perceptual pixel comparison of two images.

Compares two screenshots pixel by pixel with an optional shift tolerance,
classifies the result against an aggregate threshold (pixel count or
fraction of the compared area) and renders a difference overlay.

Architecture layers (strict one-way dependency):
    cli → diff/ → imaging/ → utils/

Key invariants:
    - Images are 8-bit RGBA, row-major, top-left origin
    - Regions are always normalized against image bounds before use
    - Mismatched sizes are reconciled by clipping, never an error
    - Same inputs and configuration give the same count and output pixels
"""

__version__ = "1.0.0"

from blinkdiff.diff.engine import BlinkDiff, EngineState
from blinkdiff.diff.threshold import ComparisonResult, ResultCode, ThresholdEvaluator, has_passed
from blinkdiff.errors import BlinkDiffError, ConfigurationError, LoadError, WriteError
from blinkdiff.imaging.png_image import PngImage
from blinkdiff.utils.validators import (
    BlockOutSpec,
    ColorSpec,
    Composition,
    DiffConfig,
    RegionSpec,
    ThresholdType,
    load_diff_config,
)

__all__ = [
    "__version__",
    "BlinkDiff",
    "EngineState",
    "ComparisonResult",
    "ResultCode",
    "ThresholdEvaluator",
    "has_passed",
    "BlinkDiffError",
    "ConfigurationError",
    "LoadError",
    "WriteError",
    "PngImage",
    "BlockOutSpec",
    "ColorSpec",
    "Composition",
    "DiffConfig",
    "RegionSpec",
    "ThresholdType",
    "load_diff_config",
]
