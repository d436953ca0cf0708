"""Command line front end: compare two images and exit with the verdict.

Runs one comparison and maps the result to an exit status:
    0  the images are identical or similar (below the threshold)
    1  the images differ, or the run failed (bad options, unreadable input,
       unwritable output)

Refactored architecture:
    - diff_main(image_a, image_b, config, ...) → ComparisonResult
        * Callable function (used by tests and wrapper scripts)
    - main(argv) → int: argument parsing, logging setup, reporting

Options given on the command line override values from --config.

CLI:
    blink-diff a.png b.png
    blink-diff --output diff.png --threshold 0.01 --threshold-type percent a.png b.png
    blink-diff --block-out 0,0,100,20 --h-shift 1 --v-shift 1 --verbose a.png b.png
    blink-diff --config diff.yaml --report report.yaml a.png b.png
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from blinkdiff import __version__
from blinkdiff.diff.engine import BlinkDiff
from blinkdiff.diff.threshold import ComparisonResult
from blinkdiff.errors import BlinkDiffError, ConfigurationError
from blinkdiff.utils import fs, validators
from blinkdiff.utils.logging_config import install_excepthook, push_context, setup_logging

logger = logging.getLogger(__name__)


class UsageError(ConfigurationError):
    """Invalid command line value."""

    pass


# ============================================================================
# OPTION PARSING
# ============================================================================

def _positive(name: str, value: Optional[float]) -> Optional[float]:
    if value is not None and value < 0:
        raise UsageError(f"{name} must be positive, got {value}")
    return value


def _parse_ints(text: str) -> List[Optional[int]]:
    values = []
    for part in text.split(","):
        part = part.strip()
        try:
            values.append(int(part) if part else None)
        except ValueError:
            raise UsageError(f"Expected comma-separated integers, got {text!r}") from None
    return values


def parse_region(text: str) -> Dict[str, Optional[int]]:
    """Parse "x,y,width,height"; trailing or empty fields stay unset."""
    values = _parse_ints(text)
    if len(values) > 4:
        raise UsageError(f"A region has at most 4 values (x,y,width,height), got {text!r}")
    values += [None] * (4 - len(values))
    return dict(zip(("x", "y", "width", "height"), values))


def parse_block_out(text: str) -> Dict[str, Optional[int]]:
    region = parse_region(text)
    if region["x"] is None or region["y"] is None:
        raise UsageError(
            f"--block-out {text!r} requires at least x and y "
            "(should at least have the x and y coordinate)"
        )
    return {k: v for k, v in region.items() if v is not None}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blink-diff",
        usage="blink-diff [options] IMAGE_A IMAGE_B",
        description="Compare two images pixel by pixel and report whether they differ",
    )
    parser.add_argument("image_a", nargs="?", help="First image (PNG)")
    parser.add_argument("image_b", nargs="?", help="Second image (PNG)")
    parser.add_argument("--version", action="version", version=f"Blink-Diff {__version__}")

    parser.add_argument("--output", type=str, help="Write the difference image to this path")
    parser.add_argument("--config", type=str, help="YAML file with DiffConfig fields")
    parser.add_argument("--report", type=str, help="Write the comparison result as YAML")

    parser.add_argument("--threshold", type=float, help="Number of pixels (or fraction) allowed to differ (default 500)")
    parser.add_argument("--threshold-type", type=str, help="'pixel' or 'percent' (default pixel)")
    parser.add_argument("--delta", type=float, help="Maximum color distance of matching pixels (default 20)")
    parser.add_argument("--h-shift", type=int, help="Horizontal shift tolerance in pixels")
    parser.add_argument("--v-shift", type=int, help="Vertical shift tolerance in pixels")
    parser.add_argument("--hide-shift", action="store_true", default=None,
                        help="Paint shifted pixels like matching pixels")
    parser.add_argument("--perceptual", action="store_true", default=None,
                        help="Compare colors in CIE L*a*b* instead of raw RGBA")
    parser.add_argument("--gamma", type=float, help="Gamma of the input images (implies --perceptual)")

    parser.add_argument("--block-out", action="append", metavar="x,y[,w,h]",
                        help="Exclude a region from comparison (repeatable)")
    parser.add_argument("--crop-image-a", metavar="x,y,w,h", help="Compare only this region of image A")
    parser.add_argument("--crop-image-b", metavar="x,y,w,h", help="Compare only this region of image B")
    parser.add_argument("--filter", action="append", metavar="name[,name]",
                        help="Filters applied before comparing: blur, grayscale, lightness, luma, luminosity, sepia")

    copy = parser.add_mutually_exclusive_group()
    copy.add_argument("--copyImageA", dest="copy", action="store_const", const="a",
                      help="Use image A as the background of the output (default)")
    copy.add_argument("--copyImageB", dest="copy", action="store_const", const="b",
                      help="Use image B as the background of the output")
    copy.add_argument("--no-copy", dest="copy", action="store_const", const="none",
                      help="Paint the overlay on a transparent background")

    compose = parser.add_mutually_exclusive_group()
    compose.add_argument("--no-composition", dest="composition", action="store_const",
                         const=validators.Composition.OVERLAY.value,
                         help="Output the overlay only, without A and B next to it")
    compose.add_argument("--compose-ltr", dest="composition", action="store_const",
                         const=validators.Composition.LEFT_TO_RIGHT.value,
                         help="Place A, overlay and B left to right")
    compose.add_argument("--compose-ttb", dest="composition", action="store_const",
                         const=validators.Composition.TOP_TO_BOTTOM.value,
                         help="Place A, overlay and B top to bottom")

    parser.add_argument("--verbose", action="store_true", help="Print result details and timing")
    parser.add_argument("--debug", action="store_true", help="Debug logging")
    return parser


def args_to_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Translate parsed arguments into DiffConfig overrides.

    Raises
    ------
    UsageError
        If a value is negative or malformed
    """
    overrides: Dict[str, Any] = {}

    for name, value in (
        ("threshold", args.threshold),
        ("delta", args.delta),
        ("h_shift", args.h_shift),
        ("v_shift", args.v_shift),
        ("gamma", args.gamma),
    ):
        flag = "--" + name.replace("_", "-")
        if _positive(flag, value) is not None:
            overrides[name] = value

    if args.threshold_type is not None:
        if args.threshold_type not in (t.value for t in validators.ThresholdType):
            raise UsageError(
                f"--threshold-type can be either 'pixel' or 'percent', got {args.threshold_type!r}"
            )
        overrides["threshold_type"] = args.threshold_type

    if args.hide_shift:
        overrides["hide_shift"] = True
    if args.perceptual:
        overrides["perceptual"] = True

    if args.block_out:
        overrides["block_out"] = [parse_block_out(text) for text in args.block_out]
    if args.crop_image_a:
        overrides["crop_image_a"] = parse_region(args.crop_image_a)
    if args.crop_image_b:
        overrides["crop_image_b"] = parse_region(args.crop_image_b)
    if args.filter:
        overrides["filters"] = [
            name.strip() for group in args.filter for name in group.split(",") if name.strip()
        ]

    if args.copy is not None:
        overrides["copy_image_a_to_output"] = args.copy == "a"
        overrides["copy_image_b_to_output"] = args.copy == "b"
    if args.composition is not None:
        overrides["composition"] = args.composition
    if args.output:
        overrides["image_output_path"] = args.output

    return overrides


# ============================================================================
# ENTRY POINTS
# ============================================================================

def diff_main(
    image_a_path: str,
    image_b_path: str,
    config: Optional[validators.DiffConfig] = None,
    report_path: Optional[str] = None,
) -> ComparisonResult:
    """Compare two image files and optionally write a YAML report.

    Parameters
    ----------
    image_a_path, image_b_path : str
        Images to compare
    config : Optional[DiffConfig]
        Comparison configuration (defaults when None)
    report_path : Optional[str]
        Write result.to_dict() here as YAML

    Returns
    -------
    ComparisonResult
        Result of the run

    Raises
    ------
    BlinkDiffError
        On invalid configuration, unreadable input or unwritable output
    """
    push_context(image_a=Path(image_a_path).name, image_b=Path(image_b_path).name)
    engine = BlinkDiff(image_a_path=image_a_path, image_b_path=image_b_path, config=config)
    result = engine.run()

    if report_path:
        report = result.to_dict()
        report["image_a"] = str(image_a_path)
        report["image_b"] = str(image_b_path)
        report["image_output"] = engine.config.image_output_path
        fs.atomic_yaml_dump(report, report_path)
        logger.info(f"Wrote report {report_path}")

    return result


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point; returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.image_a is None or args.image_b is None:
        parser.print_help()
        return 1

    level = "DEBUG" if args.debug else ("INFO" if args.verbose else "WARNING")
    setup_logging(log_level=level, context={"app": "blink-diff"})
    install_excepthook()

    start = time.perf_counter()
    try:
        overrides = args_to_overrides(args)
        if args.config:
            config = validators.load_diff_config(args.config, **overrides)
        else:
            config = validators.build_diff_config(**overrides)
        result = diff_main(args.image_a, args.image_b, config, report_path=args.report)
    except (BlinkDiffError, OSError) as e:
        logger.debug("Comparison failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    elapsed = time.perf_counter() - start

    if args.verbose:
        print(f"Differences: {result.differences} of {result.dimension} pixels "
              f"({result.width}x{result.height})")
        print(f"Time: {elapsed * 1000:.2f} ms")
        print("PASS" if result.passed else "FAIL")

    return 0 if result.passed else 1


if __name__ == "__main__":
    sys.exit(main())
