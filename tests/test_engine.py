"""End-to-end tests for the BlinkDiff engine.

Tests for blinkdiff.diff.engine:
    - Result fields for identical / different 2x2 images
    - Crop and clip dimensions
    - Block-out, filters and shift through the full pipeline
    - Output image: base layer, composition, file writing
    - Image sources: PngImage, arrays, bytes, paths
    - Errors and state machine (ConfigurationError, LoadError, WriteError)
    - Async and callback completion

Run:
    pytest tests/test_engine.py -v
"""

import asyncio

import numpy as np
import pytest

from blinkdiff import (
    BlinkDiff,
    ComparisonResult,
    ConfigurationError,
    DiffConfig,
    EngineState,
    LoadError,
    PngImage,
    ResultCode,
    WriteError,
)

A_2X2 = [
    [(10, 20, 30, 40), (50, 60, 70, 80)],
    [(90, 100, 110, 120), (130, 140, 150, 160)],
]
B_2X2 = [
    [(210, 220, 230, 240), (10, 20, 30, 40)],
    [(50, 60, 70, 80), (15, 25, 35, 45)],
]


def rgba(rows):
    return np.array(rows, dtype=np.uint8)


def solid(width, height, value=(100, 150, 200, 255)):
    return np.tile(np.array(value, dtype=np.uint8), (height, width, 1))


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def png_files(tmp_path):
    """A 2x2 and a 3x3 PNG on disk."""
    path_a = tmp_path / "a.png"
    path_b = tmp_path / "b.png"
    PngImage(rgba(A_2X2)).write_image(path_a)
    PngImage(solid(3, 3)).write_image(path_b)
    return path_a, path_b


# ============================================================================
# CLASSIFICATION
# ============================================================================

def test_identical_images():
    engine = BlinkDiff(image_a=rgba(A_2X2), image_b=rgba(A_2X2), threshold=3, threshold_type="pixel")
    result = engine.run()
    assert result == ComparisonResult(ResultCode.IDENTICAL, 0, 4, 2, 2)
    assert result.passed
    assert engine.has_passed()
    assert engine.state is EngineState.DONE


def test_all_pixels_differ():
    result = BlinkDiff(image_a=rgba(A_2X2), image_b=rgba(B_2X2), delta=10, threshold=3).run()
    assert result.differences == 4
    assert result.code is ResultCode.DIFFERENT
    assert not result.passed


def test_two_pixels_differ():
    result = BlinkDiff(image_a=rgba(A_2X2), image_b=rgba(B_2X2), delta=100, threshold=3).run()
    assert result.differences == 2
    assert result.code is ResultCode.SIMILAR


def test_percent_threshold():
    engine = BlinkDiff(image_a=rgba(A_2X2), image_b=rgba(B_2X2), delta=100,
                       threshold=0.5, threshold_type="percent")
    assert engine.run().code is ResultCode.DIFFERENT


def test_timings_recorded():
    result = BlinkDiff(image_a=rgba(A_2X2), image_b=rgba(A_2X2)).run()
    assert {"load", "normalize", "compare", "composite"} <= set(result.timings)


# ============================================================================
# DIMENSIONS
# ============================================================================

def test_crop_a(png_files):
    path_a, _ = png_files
    big = solid(3, 3)
    result = BlinkDiff(image_a_path=path_a, image_b=big, crop_image_a={"width": 1, "height": 2}).run()
    assert result.dimension == 2
    assert (result.width, result.height) == (1, 2)


def test_crop_b(png_files):
    path_a, path_b = png_files
    result = BlinkDiff(image_a_path=path_a, image_b_path=path_b, crop_image_b={"width": 1, "height": 1}).run()
    assert result.dimension == 1


def test_clip_without_crop(png_files):
    path_a, path_b = png_files
    engine = BlinkDiff(image_a_path=path_a, image_b_path=path_b)
    result = engine.run()
    assert result.dimension == 4
    assert (engine.image_a.width, engine.image_b.width) == (2, 2)


def test_crop_region_content():
    pixels = np.zeros((3, 4, 4), dtype=np.uint8)
    pixels[..., 0] = np.arange(4)[None, :]
    pixels[..., 1] = np.arange(3)[:, None]
    engine = BlinkDiff(image_a=pixels, image_b=pixels, crop_image_a={"x": 1, "y": 2, "width": 2, "height": 1})
    engine.run()
    assert (engine.image_a.width, engine.image_a.height) == (2, 1)
    assert tuple(engine.image_a.pixels[0, 0, :2]) == (1, 2)


def test_out_of_range_crop_is_clamped():
    result = BlinkDiff(image_a=solid(3, 3), image_b=solid(3, 3),
                       crop_image_a={"x": 100, "y": 100, "width": 100, "height": 100}).run()
    assert result.dimension == 1


def test_zero_area_is_identical():
    result = BlinkDiff(image_a=solid(2, 2), image_b=solid(2, 2, (0, 0, 0, 0)),
                       crop_image_a={"width": 0}).run()
    assert result == ComparisonResult(ResultCode.IDENTICAL, 0, 0, 0, 2)


@pytest.mark.parametrize("composition", ["auto", "overlay", "ltr"])
def test_zero_area_with_output_path(tmp_path, composition):
    out = tmp_path / "diff.png"
    engine = BlinkDiff(image_a=solid(2, 2), image_b=solid(2, 2), crop_image_a={"width": 0},
                       composition=composition, image_output_path=out)
    result = engine.run()
    assert result.code is ResultCode.IDENTICAL
    assert result.dimension == 0
    assert engine.state is EngineState.DONE
    assert engine.image_output.width == 0
    assert not out.exists()


def test_caller_image_not_mutated():
    original = PngImage(solid(3, 3))
    BlinkDiff(image_a=original, image_b=solid(3, 3), crop_image_a={"width": 1}).run()
    assert (original.width, original.height) == (3, 3)


# ============================================================================
# PREPROCESSING
# ============================================================================

@pytest.fixture
def stamped_pair():
    """Solid images that differ only inside a 2x2 square at (1, 1)."""
    a = solid(4, 4)
    b = a.copy()
    b[1:3, 1:3] = (0, 0, 0, 255)
    return a, b


def test_block_out_both(stamped_pair):
    a, b = stamped_pair
    result = BlinkDiff(image_a=a, image_b=b, block_out=[{"x": 1, "y": 1, "width": 2, "height": 2}]).run()
    assert result.differences == 0


def test_block_out_only_a(stamped_pair):
    a, b = stamped_pair
    result = BlinkDiff(image_a=a, image_b=b,
                       block_out=[{"x": 0, "y": 0, "width": 4, "height": 1, "only": "a"}]).run()
    assert result.differences == 4 + 4


def test_filters_applied():
    a = solid(2, 2, (10, 20, 30, 255))
    b = solid(2, 2, (20, 20, 20, 255))
    assert BlinkDiff(image_a=a, image_b=b, delta=0).run().differences == 4
    assert BlinkDiff(image_a=a, image_b=b, delta=0, filters="grayscale").run().differences == 0


def test_shift_tolerance():
    a = solid(5, 3, (0, 0, 0, 255))
    b = a.copy()
    a[:, 2, :3] = 255
    b[:, 3, :3] = 255
    assert BlinkDiff(image_a=a, image_b=b, delta=20, threshold=0).run().differences == 6
    assert BlinkDiff(image_a=a, image_b=b, delta=20, h_shift=1).run().differences == 0


def test_gamma_enables_perceptual():
    a = rgba(A_2X2)
    b = rgba(B_2X2)
    raw = BlinkDiff(image_a=a, image_b=b, delta=25).run()
    perceptual = BlinkDiff(image_a=a, image_b=b, delta=25, gamma=2.2).run()
    assert raw.differences == 4
    assert perceptual.differences < raw.differences


# ============================================================================
# OUTPUT IMAGE
# ============================================================================

def test_output_written(tmp_path):
    out = tmp_path / "out" / "diff.png"
    engine = BlinkDiff(image_a=rgba(A_2X2), image_b=rgba(B_2X2), image_output_path=out)
    engine.run()
    written = PngImage.read_image(out)
    # 2x2 is not wider than tall → left to right: A | overlay | B
    assert (written.width, written.height) == (6, 2)
    assert written == engine.image_output


def test_no_composition_writes_nothing(tmp_path):
    out = tmp_path / "diff.png"
    engine = BlinkDiff(image_a=rgba(A_2X2), image_b=rgba(B_2X2), composition="none", image_output_path=out)
    result = engine.run()
    assert result.differences == 4
    assert engine.image_output is None
    assert not out.exists()


def test_output_black_without_copy():
    engine = BlinkDiff(
        image_a=rgba(A_2X2), image_b=rgba(B_2X2),
        composition="overlay", delta=1000,
        copy_image_a_to_output=False,
        background_color={"red": 0, "green": 0, "blue": 0, "alpha": 0},
    )
    engine.run()
    assert not engine.image_output.pixels.any()


def test_output_copies_a_by_default():
    engine = BlinkDiff(image_a=rgba(A_2X2), image_b=rgba(B_2X2), composition="overlay",
                       delta=1000, background_color={})
    engine.run()
    np.testing.assert_array_equal(engine.image_output.pixels, rgba(A_2X2))


def test_output_copies_b():
    engine = BlinkDiff(image_a=rgba(A_2X2), image_b=rgba(B_2X2), composition="overlay",
                       delta=1000, background_color={},
                       copy_image_a_to_output=False, copy_image_b_to_output=True)
    engine.run()
    np.testing.assert_array_equal(engine.image_output.pixels, rgba(B_2X2))


def test_output_mask_painted():
    engine = BlinkDiff(image_a=solid(1, 1), image_b=solid(1, 1, (0, 0, 0, 255)), composition="overlay",
                       mask_color={"red": 255, "green": 0, "blue": 0, "alpha": 255})
    engine.run()
    assert tuple(engine.image_output.pixels[0, 0]) == (255, 0, 0, 255)


# ============================================================================
# IMAGE SOURCES
# ============================================================================

def test_bytes_source():
    encoded = PngImage(rgba(A_2X2)).to_bytes()
    result = BlinkDiff(image_a=encoded, image_b=bytearray(encoded)).run()
    assert result.code is ResultCode.IDENTICAL


def test_rgb_array_source():
    result = BlinkDiff(image_a=solid(2, 2)[..., :3], image_b=solid(2, 2)).run()
    assert result.code is ResultCode.IDENTICAL


def test_source_wins_over_path(tmp_path):
    result = BlinkDiff(image_a=solid(2, 2), image_a_path=tmp_path / "missing.png", image_b=solid(2, 2)).run()
    assert result.code is ResultCode.IDENTICAL


# ============================================================================
# ERRORS AND STATE
# ============================================================================

def test_missing_source():
    with pytest.raises(ConfigurationError, match="image B"):
        BlinkDiff(image_a=solid(1, 1))


@pytest.mark.parametrize("options", [
    {"threshold": -1},
    {"threshold_type": "relative"},
    {"h_shift": -2},
    {"block_out": [{"x": 1}]},
    {"unknown_option": True},
])
def test_invalid_configuration(options):
    with pytest.raises(ConfigurationError):
        BlinkDiff(image_a=solid(1, 1), image_b=solid(1, 1), **options)


def test_missing_file(tmp_path):
    engine = BlinkDiff(image_a_path=tmp_path / "nope.png", image_b=solid(1, 1))
    with pytest.raises(LoadError, match="not found"):
        engine.run()
    assert engine.state is EngineState.FAILED
    assert engine.result is None


def test_undecodable_bytes():
    with pytest.raises(LoadError, match="decode"):
        BlinkDiff(image_a=b"garbage", image_b=solid(1, 1)).run()


def test_undecodable_file(tmp_path):
    path = tmp_path / "bad.png"
    path.write_bytes(b"not a png")
    with pytest.raises(LoadError):
        BlinkDiff(image_a_path=path, image_b=solid(1, 1)).run()


def test_non_uint8_array_rejected():
    with pytest.raises(LoadError, match="uint8"):
        BlinkDiff(image_a=np.full((2, 2, 4), 300.7), image_b=solid(2, 2)).run()


def test_write_error_keeps_result(tmp_path):
    blocker = tmp_path / "file.txt"
    blocker.write_text("x")
    engine = BlinkDiff(image_a=solid(2, 2), image_b=solid(2, 2), image_output_path=blocker / "diff.png")
    with pytest.raises(WriteError):
        engine.run()
    assert engine.state is EngineState.FAILED
    assert engine.result.code is ResultCode.IDENTICAL


def test_same_config_object_is_used():
    cfg = DiffConfig()
    engine = BlinkDiff(image_a=rgba(A_2X2), image_b=rgba(B_2X2), config=cfg)
    assert engine.config is cfg
    cfg.delta = 100
    assert engine.run().differences == 2


def test_config_dict_with_overrides():
    engine = BlinkDiff(image_a=rgba(A_2X2), image_b=rgba(B_2X2), config={"delta": 100}, threshold=2)
    assert engine.run().code is ResultCode.DIFFERENT


def test_rerun_is_repeatable():
    engine = BlinkDiff(image_a=rgba(A_2X2), image_b=rgba(B_2X2), delta=100, crop_image_a={"width": 1})
    first = engine.run()
    second = engine.run()
    assert first == second


# ============================================================================
# COMPLETION STYLES
# ============================================================================

def test_run_async():
    engine = BlinkDiff(image_a=rgba(A_2X2), image_b=rgba(B_2X2), delta=100)
    result = asyncio.run(engine.run_async())
    assert result.differences == 2


def test_callback_success():
    calls = []
    engine = BlinkDiff(image_a=rgba(A_2X2), image_b=rgba(A_2X2))
    returned = engine.run_with_callback(lambda err, res: calls.append((err, res)))
    assert calls == [(None, returned)]
    assert returned.code is ResultCode.IDENTICAL


def test_callback_load_error(tmp_path):
    calls = []
    engine = BlinkDiff(image_a_path=tmp_path / "missing.png", image_b=solid(1, 1))
    assert engine.run_with_callback(lambda err, res: calls.append((err, res))) is None
    (err, res), = calls
    assert isinstance(err, LoadError)
    assert res is None


def test_callback_write_error_passes_result(tmp_path):
    blocker = tmp_path / "file.txt"
    blocker.write_text("x")
    calls = []
    engine = BlinkDiff(image_a=solid(2, 2), image_b=solid(2, 2), image_output_path=blocker / "d.png")
    engine.run_with_callback(lambda err, res: calls.append((err, res)))
    (err, res), = calls
    assert isinstance(err, WriteError)
    assert res.code is ResultCode.IDENTICAL


def test_callback_receives_unexpected_errors(monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("comparator crashed")

    monkeypatch.setattr("blinkdiff.diff.engine.pixel_compare", broken)
    calls = []
    engine = BlinkDiff(image_a=solid(2, 2), image_b=solid(2, 2))
    assert engine.run_with_callback(lambda err, res: calls.append((err, res))) is None
    (err, res), = calls
    assert isinstance(err, RuntimeError)
    assert res is None
    assert engine.state is EngineState.FAILED
