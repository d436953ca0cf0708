"""Test the blink-diff command line and diff_main() callable API.

Validates that:
    - Exit status is 0 for passing and 1 for failing or broken runs
    - Invalid option values are reported on stderr with exit status 1
    - --verbose prints differences, timing and PASS/FAIL
    - --output, --report and --config are honored
    - diff_main() is callable without the CLI

Run:
    pytest tests/test_cli.py -v
"""

import logging

import numpy as np
import pytest
import yaml

from blinkdiff import PngImage, ResultCode
from blinkdiff.cli import diff_main, main, parse_block_out, parse_region, UsageError
from blinkdiff.utils import logging_config
from blinkdiff.utils.validators import DiffConfig


@pytest.fixture(autouse=True)
def restore_logging():
    """main() configures the root logger; drop its handlers afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    logging.captureWarnings(False)
    logging_config.pop_context()


@pytest.fixture
def images(tmp_path):
    """4x4 pair where B has one white pixel more than A."""
    a = np.zeros((4, 4, 4), dtype=np.uint8)
    a[..., 3] = 255
    b = a.copy()
    b[1, 2, :3] = 255
    path_a, path_b = tmp_path / "a.png", tmp_path / "b.png"
    PngImage(a).write_image(path_a)
    PngImage(b).write_image(path_b)
    return str(path_a), str(path_b)


# ============================================================================
# REGION PARSING
# ============================================================================

def test_parse_region():
    assert parse_region("1,2,3,4") == {"x": 1, "y": 2, "width": 3, "height": 4}
    assert parse_region("1,,3") == {"x": 1, "y": None, "width": 3, "height": None}


def test_parse_region_rejects_garbage():
    with pytest.raises(UsageError, match="integers"):
        parse_region("1,a")
    with pytest.raises(UsageError, match="at most 4"):
        parse_region("1,2,3,4,5")


def test_parse_block_out():
    assert parse_block_out("5,6") == {"x": 5, "y": 6}
    with pytest.raises(UsageError, match="requires at least x and y"):
        parse_block_out("5")


# ============================================================================
# EXIT STATUS
# ============================================================================

def test_passing_run(images):
    assert main(list(images)) == 0


def test_failing_run(images, capsys):
    assert main(["--threshold", "0", "--verbose", *images]) == 1
    out = capsys.readouterr().out
    assert "Differences: 1 of 16 pixels (4x4)" in out
    assert "Time:" in out
    assert "FAIL" in out


def test_verbose_pass(images, capsys):
    assert main(["--verbose", *images]) == 0
    assert "PASS" in capsys.readouterr().out


def test_percent_threshold(images):
    # 1 of 16 pixels = 0.0625
    assert main(["--threshold", "0.07", "--threshold-type", "percent", *images]) == 0
    assert main(["--threshold", "0.06", "--threshold-type", "percent", *images]) == 1


def test_shift_makes_pass(tmp_path):
    a = np.zeros((3, 5, 4), dtype=np.uint8)
    a[..., 3] = 255
    b = a.copy()
    a[:, 1, :3] = 255
    b[:, 2, :3] = 255
    path_a, path_b = tmp_path / "a.png", tmp_path / "b.png"
    PngImage(a).write_image(path_a)
    PngImage(b).write_image(path_b)
    args = ["--threshold", "0", str(path_a), str(path_b)]
    assert main(args) == 1
    assert main(["--h-shift", "1", *args]) == 0


def test_block_out_makes_pass(images):
    assert main(["--threshold", "0", "--block-out", "2,1,1,1", *images]) == 0


def test_missing_images_prints_help(capsys):
    assert main([]) == 1
    assert "usage: blink-diff" in capsys.readouterr().out


def test_version(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--version"])
    assert excinfo.value.code == 0
    assert "Blink-Diff" in capsys.readouterr().out


# ============================================================================
# INVALID INPUT
# ============================================================================

@pytest.mark.parametrize("args, message", [
    (["--threshold", "-1"], "--threshold must be positive"),
    (["--delta", "-5"], "--delta must be positive"),
    (["--h-shift", "-1"], "--h-shift must be positive"),
    (["--threshold-type", "relative"], "can be either 'pixel' or 'percent'"),
    (["--block-out", "3"], "requires at least x and y"),
])
def test_invalid_values(images, capsys, args, message):
    assert main([*args, *images]) == 1
    assert message in capsys.readouterr().err


def test_missing_file(images, tmp_path, capsys):
    assert main([images[0], str(tmp_path / "missing.png")]) == 1
    assert "not found" in capsys.readouterr().err


def test_oversized_crop_is_clamped(images, capsys):
    # A cropped to its black 2x2 corner, B clipped to its black 2x2 corner
    assert main(["--threshold", "0", "--verbose", "--crop-image-a", "2,2,10,10", *images]) == 0
    assert "Differences: 0 of 4 pixels (2x2)" in capsys.readouterr().out


def test_unwritable_output(images, tmp_path, capsys):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    assert main(["--output", str(blocker / "diff.png"), *images]) == 1
    assert "Error:" in capsys.readouterr().err


# ============================================================================
# OUTPUTS
# ============================================================================

def test_output_image(images, tmp_path):
    out = tmp_path / "out" / "diff.png"
    assert main(["--output", str(out), "--compose-ltr", *images]) == 0
    image = PngImage.read_image(out)
    assert (image.width, image.height) == (12, 4)


def test_output_overlay_only(images, tmp_path):
    out = tmp_path / "diff.png"
    assert main(["--output", str(out), "--no-composition", *images]) == 0
    image = PngImage.read_image(out)
    assert (image.width, image.height) == (4, 4)
    # Difference painted with the mask color over A's black
    assert tuple(image.pixels[1, 2]) == (179, 0, 0, 255)


def test_report(images, tmp_path):
    report = tmp_path / "report.yaml"
    assert main(["--threshold", "0", "--report", str(report), *images]) == 1
    data = yaml.safe_load(report.read_text())
    assert data["code"] == int(ResultCode.DIFFERENT)
    assert data["result"] == "different"
    assert data["passed"] is False
    assert data["differences"] == 1
    assert data["image_a"] == images[0]
    assert data["image_output"] is None


def test_config_file(images, tmp_path):
    config = tmp_path / "diff.yaml"
    config.write_text("threshold: 0\n")
    assert main(["--config", str(config), *images]) == 1
    # Command line wins over the file
    assert main(["--config", str(config), "--threshold", "1", *images]) == 0


def test_invalid_config_file(images, tmp_path, capsys):
    config = tmp_path / "diff.yaml"
    config.write_text("delta: -1\n")
    assert main(["--config", str(config), *images]) == 1
    assert "Error:" in capsys.readouterr().err


def test_diff_main_callable(images):
    result = diff_main(*images, DiffConfig(threshold=0))
    assert result.code is ResultCode.DIFFERENT
    assert (result.differences, result.dimension) == (1, 16)
    assert set(result.timings) >= {"load", "compare"}
