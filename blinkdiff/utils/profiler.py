"""Lightweight profiling: wall-clock timers.

Provides:
    - timer(): Context manager for wall-clock timing with optional sink
    - StageTimings: per-stage durations collected during one comparison run

Used to measure:
    - Image loading and decoding
    - Dimension reconciliation (crop, block-out, clip, filters)
    - Pixel comparison
    - Composition and output writing

No heavy dependencies (no line_profiler, no cProfile overhead).
"""

import logging
import time
from contextlib import contextmanager
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


@contextmanager
def timer(name: str, sink: Optional[Callable[[str, float], None]] = None):
    """Context manager for wall-clock timing.

    Parameters
    ----------
    name : str
        Timer name (for logging/display)
    sink : Optional[Callable[[str, float], None]]
        Optional callback(name, elapsed_seconds)
        If None, the duration is logged at DEBUG level

    Examples
    --------
    >>> with timer("compare"):
    ...     count = pixel_compare(...)

    >>> timings = StageTimings()
    >>> with timer("load", sink=timings.record):
    ...     image = PngImage.read_image(path)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if sink is not None:
            sink(name, elapsed)
        else:
            logger.debug(f"{name}: {elapsed:.3f} s")


class StageTimings:
    """Accumulate named stage durations for one run.

    Attributes
    ----------
    stages : Dict[str, float]
        Seconds per stage, in insertion order; repeated names accumulate
    """

    def __init__(self):
        self.stages: Dict[str, float] = {}

    def record(self, name: str, elapsed: float) -> None:
        self.stages[name] = self.stages.get(name, 0.0) + elapsed

    def total(self) -> float:
        return sum(self.stages.values())

    def reset(self) -> None:
        self.stages.clear()

    def __repr__(self) -> str:
        body = ", ".join(f"{k}={v:.4f}s" for k, v in self.stages.items())
        return f"StageTimings({body})"
