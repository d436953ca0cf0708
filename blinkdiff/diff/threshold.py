"""Aggregate threshold evaluation and comparison results.

A comparison yields a difference count over a compared area (dimension).
The ThresholdEvaluator turns that count into a ResultCode:

    differences == 0                     → IDENTICAL (even for threshold 0)
    0 < differences, below threshold     → SIMILAR
    0 < differences, at/above threshold  → DIFFERENT

"At/above" is inclusive: in pixel mode `differences >= threshold`, in
percent mode `differences / dimension >= threshold` (threshold given as a
fraction, e.g. 0.01 for 1 %). An empty compared area can never be above
a percent threshold.
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Union

from blinkdiff.utils.validators import ThresholdType

logger = logging.getLogger(__name__)


class ResultCode(IntEnum):
    UNKNOWN = 0
    DIFFERENT = 1
    IDENTICAL = 5
    SIMILAR = 7


def has_passed(code: Union[ResultCode, int]) -> bool:
    """True for IDENTICAL and SIMILAR."""
    return code in (ResultCode.IDENTICAL, ResultCode.SIMILAR)


@dataclass(frozen=True)
class ComparisonResult:
    """Outcome of one comparison run.

    Attributes
    ----------
    code : ResultCode
        Classification
    differences : int
        Pixels whose best match exceeded the delta threshold
    dimension : int
        Number of compared pixels (width * height after clipping)
    width, height : int
        Size of the compared area
    timings : Dict[str, float]
        Seconds per processing stage (not part of equality)
    """

    code: ResultCode
    differences: int
    dimension: int
    width: int
    height: int
    timings: Dict[str, float] = field(default_factory=dict, compare=False)

    @property
    def passed(self) -> bool:
        return has_passed(self.code)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": int(self.code),
            "result": self.code.name.lower(),
            "passed": self.passed,
            "differences": self.differences,
            "dimension": self.dimension,
            "width": self.width,
            "height": self.height,
            "timings": {k: round(v, 6) for k, v in self.timings.items()},
        }


class ThresholdEvaluator:
    """Decide whether a difference count exceeds the aggregate threshold.

    Parameters
    ----------
    threshold : float
        Pixel count (pixel mode) or fraction of compared pixels (percent mode)
    threshold_type : ThresholdType | str
        "pixel" or "percent"
    """

    def __init__(self, threshold: float, threshold_type: Union[ThresholdType, str] = ThresholdType.PIXEL):
        self.threshold = threshold
        self.threshold_type = ThresholdType(threshold_type)

    def is_above_threshold(self, differences: int, dimension: int) -> bool:
        if self.threshold_type is ThresholdType.PERCENT:
            if dimension <= 0:
                return False
            return differences / dimension >= self.threshold
        return differences >= self.threshold

    def classify(self, differences: int, dimension: int) -> ResultCode:
        if differences == 0:
            return ResultCode.IDENTICAL
        if self.is_above_threshold(differences, dimension):
            return ResultCode.DIFFERENT
        return ResultCode.SIMILAR

    def __repr__(self) -> str:
        return f"ThresholdEvaluator({self.threshold}, {self.threshold_type.value!r})"
