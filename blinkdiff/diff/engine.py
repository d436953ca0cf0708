"""BlinkDiff: orchestrates one comparison run.

Runs the full pipeline for an image pair:
    1. Load A and B (decoded PngImage, RGBA array, encoded bytes, or path)
    2. Normalize dimensions:
        - crop A / B to their configured regions (normalized first)
        - block out regions in A and/or B
        - clip both to the common top-left area if sizes still differ
        - apply filters to both
    3. Compare (painting the overlay when composition is enabled)
    4. Classify against the aggregate threshold
    5. Compose the output image
    6. Write the output image if a path is configured (a zero-area output
       is kept in memory but not written)

State machine:
    IDLE → LOADED → NORMALIZED → COMPARED → COMPOSITED → DONE
    Any stage may end in FAILED; the error is re-raised unchanged.

The configuration is validated when the engine is built and validated again
at the start of every run, so a DiffConfig mutated in between fails before
any image is read.

Usage:
    diff = BlinkDiff(image_a_path="a.png", image_b_path="b.png",
                     image_output_path="diff.png", threshold=0.01,
                     threshold_type="percent")
    result = diff.run()
    if not result.passed: ...
"""

import asyncio
import logging
from dataclasses import replace
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import numpy as np

from blinkdiff.diff.comparator import pixel_compare
from blinkdiff.diff.compositor import compose, create_output_canvas
from blinkdiff.diff.threshold import ComparisonResult, ThresholdEvaluator, has_passed
from blinkdiff.errors import ConfigurationError, LoadError, WriteError
from blinkdiff.imaging import ops
from blinkdiff.imaging.filters import apply_filters
from blinkdiff.imaging.png_image import PngImage
from blinkdiff.utils.profiler import StageTimings, timer
from blinkdiff.utils.regions import normalize_rect
from blinkdiff.utils.validators import DiffConfig, build_diff_config, revalidate

logger = logging.getLogger(__name__)

ImageSource = Union[PngImage, np.ndarray, bytes, bytearray, memoryview]


class EngineState(str, Enum):
    IDLE = "idle"
    LOADED = "loaded"
    NORMALIZED = "normalized"
    COMPARED = "compared"
    COMPOSITED = "composited"
    DONE = "done"
    FAILED = "failed"


class BlinkDiff:
    """Compare two images and classify their difference.

    Parameters
    ----------
    image_a, image_b : Optional[ImageSource]
        Decoded image, (H, W, 4) / (H, W, 3) uint8 array, or encoded bytes
    image_a_path, image_b_path : Optional[str | Path]
        Read when the matching image_* source is None
    config : Optional[DiffConfig | dict]
        Base configuration; a DiffConfig passed without options is used as is
    **options
        DiffConfig fields overriding config

    Raises
    ------
    ConfigurationError
        If the configuration is invalid or a side has no image source

    Attributes
    ----------
    state : EngineState
    image_a, image_b : Optional[PngImage]
        Working images after load (cropped/clipped/filtered after a run)
    image_output : Optional[PngImage]
        Composed output of the last run (None when composition is disabled)
    result : Optional[ComparisonResult]
        Result of the last run, also set when only writing the output failed
    """

    def __init__(
        self,
        image_a: Optional[ImageSource] = None,
        image_a_path: Optional[Union[str, Path]] = None,
        image_b: Optional[ImageSource] = None,
        image_b_path: Optional[Union[str, Path]] = None,
        config: Optional[Union[DiffConfig, Dict[str, Any]]] = None,
        **options: Any,
    ):
        if isinstance(config, DiffConfig) and not options:
            self.config = config
        else:
            self.config = build_diff_config(config, **options)

        if image_a is None and image_a_path is None:
            raise ConfigurationError("No source given for image A")
        if image_b is None and image_b_path is None:
            raise ConfigurationError("No source given for image B")

        self._sources = {"A": (image_a, image_a_path), "B": (image_b, image_b_path)}
        self.state = EngineState.IDLE
        self.image_a: Optional[PngImage] = None
        self.image_b: Optional[PngImage] = None
        self.image_output: Optional[PngImage] = None
        self.result: Optional[ComparisonResult] = None
        self.timings = StageTimings()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self) -> ComparisonResult:
        """Run the comparison (blocking).

        Raises
        ------
        ConfigurationError
            If the configuration became invalid since construction
        LoadError
            If an image is missing or undecodable
        WriteError
            If the output image cannot be written (self.result is still set)
        """
        self.state = EngineState.IDLE
        self.result = None
        self.image_output = None
        self.timings.reset()
        try:
            return self._run(revalidate(self.config))
        except Exception:
            self._transition(EngineState.FAILED)
            raise

    async def run_async(self) -> ComparisonResult:
        """Run the comparison in a worker thread."""
        return await asyncio.to_thread(self.run)

    def run_with_callback(
        self,
        callback: Callable[[Optional[Exception], Optional[ComparisonResult]], None],
    ) -> Optional[ComparisonResult]:
        """Run and report through callback(error, result).

        Every exception raised by the run is passed to the callback instead
        of propagating. The result is whatever the run produced before it
        failed: set on a write failure, None when loading or normalizing
        failed.
        """
        try:
            result = self.run()
        except Exception as e:
            callback(e, self.result)
            return None
        callback(None, result)
        return result

    def has_passed(self, code=None) -> bool:
        """Whether code (default: the last run's code) is IDENTICAL or SIMILAR."""
        if code is None:
            if self.result is None:
                return False
            code = self.result.code
        return has_passed(code)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _transition(self, state: EngineState) -> None:
        logger.debug(f"State {self.state.value} → {state.value}")
        self.state = state

    def _run(self, cfg: DiffConfig) -> ComparisonResult:
        with timer("load", sink=self.timings.record):
            self.image_a = self._load("A")
            self.image_b = self._load("B")
        self._transition(EngineState.LOADED)

        with timer("normalize", sink=self.timings.record):
            self._normalize(cfg)
        self._transition(EngineState.NORMALIZED)

        width, height = self.image_a.width, self.image_a.height
        dimension = width * height

        with timer("compare", sink=self.timings.record):
            overlay = create_output_canvas(self.image_a, self.image_b, cfg)
            differences = pixel_compare(
                self.image_a,
                self.image_b,
                overlay,
                cfg.delta,
                width,
                height,
                cfg.mask_color,
                cfg.shift_color,
                cfg.background_color,
                cfg.h_shift,
                cfg.v_shift,
                hide_shift=cfg.hide_shift,
                perceptual=cfg.uses_perceptual,
                gamma=cfg.gamma_curve(),
            )
        self._transition(EngineState.COMPARED)

        code = ThresholdEvaluator(cfg.threshold, cfg.threshold_type).classify(differences, dimension)
        self.result = ComparisonResult(code, differences, dimension, width, height)
        logger.info(
            f"Result {code.name}: {differences} of {dimension} pixels differ ({width}x{height})"
        )

        with timer("composite", sink=self.timings.record):
            self.image_output = compose(self.image_a, self.image_b, overlay, cfg.composition)
        self._transition(EngineState.COMPOSITED)

        if cfg.image_output_path and self.image_output is not None:
            if self.image_output.width == 0 or self.image_output.height == 0:
                # PNG cannot encode a zero-area image
                logger.info(
                    f"Output is empty ({self.image_output.width}x{self.image_output.height}), "
                    f"not writing {cfg.image_output_path}"
                )
            else:
                with timer("write", sink=self.timings.record):
                    self._write(Path(cfg.image_output_path))

        self.result = replace(self.result, timings=dict(self.timings.stages))
        self._transition(EngineState.DONE)
        return self.result

    def _load(self, label: str) -> PngImage:
        source, path = self._sources[label]

        if isinstance(source, PngImage):
            return source.copy()
        if isinstance(source, np.ndarray):
            try:
                return PngImage(source.copy())
            except ValueError as e:
                raise LoadError(f"Image {label}: {e}") from e
        if isinstance(source, (bytes, bytearray, memoryview)):
            try:
                return PngImage.from_bytes(bytes(source))
            except (OSError, ValueError) as e:
                raise LoadError(f"Image {label}: cannot decode buffer: {e}") from e
        if source is not None:
            raise LoadError(f"Image {label}: unsupported source type {type(source).__name__}")

        path = Path(path)
        if not path.is_file():
            raise LoadError(f"Image {label} not found: {path}")
        try:
            return PngImage.read_image(path)
        except (OSError, ValueError) as e:
            raise LoadError(f"Image {label}: cannot read {path}: {e}") from e

    def _normalize(self, cfg: DiffConfig) -> None:
        a, b = self.image_a, self.image_b

        for image, region in ((a, cfg.crop_image_a), (b, cfg.crop_image_b)):
            if region is not None:
                ops.crop(image, normalize_rect(image.width, image.height, region))

        for spec in cfg.block_out:
            for key, image in (("a", a), ("b", b)):
                if spec.applies_to(key):
                    ops.block_out(image, normalize_rect(image.width, image.height, spec), spec.color)

        if (a.width, a.height) != (b.width, b.height):
            logger.debug(f"Clipping {a.width}x{a.height} and {b.width}x{b.height} to common size")
            ops.clip(a, b)

        if cfg.filters:
            apply_filters(a, cfg.filters)
            apply_filters(b, cfg.filters)

    def _write(self, path: Path) -> None:
        try:
            self.image_output.write_image(path)
        except (OSError, ValueError, SystemError) as e:
            raise WriteError(f"Cannot write output image {path}: {e}") from e
        logger.info(f"Wrote output image {path}")
