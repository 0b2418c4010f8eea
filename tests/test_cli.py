"""Tests for image I/O and the command-line front end."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from PIL import Image
from typer.testing import CliRunner

from pixel_quant.cli import app
from pixel_quant.errors import ErrorCode
from pixel_quant.image_io import (
    collect_images,
    expand_indices,
    load_rgba,
    make_comparison_grid,
    save_indexed_png,
)
from pixel_quant.palette import Color, Palette

runner = CliRunner()

# -- Fixtures ----------------------------------------------------------

W, H = 12, 8  # non-square


@pytest.fixture
def rgba_array() -> np.ndarray:
    rng = np.random.default_rng(456)
    img = rng.integers(0, 256, size=(H, W, 4), dtype=np.uint8)
    img[..., 3] = 255
    img[0, :3, 3] = 0
    return img


@pytest.fixture
def tmp_image(tmp_path: Path, rgba_array: np.ndarray) -> Path:
    p = tmp_path / "test.png"
    Image.fromarray(rgba_array).save(p)
    return p


@pytest.fixture
def small_palette() -> Palette:
    return Palette((Color(0, 0, 0, 0), Color(255, 0, 0, 255), Color(0, 0, 255, 128)))


# -- Image I/O ---------------------------------------------------------

class TestImageIO:
    def test_load_rgba(self, tmp_image: Path, rgba_array: np.ndarray) -> None:
        buffer, width, height = load_rgba(tmp_image)
        assert (width, height) == (W, H)
        assert len(buffer) == W * H * 4
        loaded = np.frombuffer(buffer, dtype=np.uint8).reshape(H, W, 4)
        np.testing.assert_array_equal(loaded[..., 3], rgba_array[..., 3])

    def test_load_rgb_adds_alpha(self, tmp_path: Path) -> None:
        p = tmp_path / "rgb.jpg"
        Image.new("RGB", (5, 3), (10, 20, 30)).save(p)
        buffer, width, height = load_rgba(p)
        assert (width, height) == (5, 3)
        assert buffer[3::4] == bytes([255] * 15)

    def test_collect_images(self, tmp_path: Path) -> None:
        for name in ("b.png", "a.JPG", "notes.txt"):
            (tmp_path / name).write_bytes(b"")
        assert [p.name for p in collect_images(tmp_path)] == ["a.JPG", "b.png"]
        assert collect_images(tmp_path / "missing") == []

    def test_save_indexed_png(self, tmp_path: Path, small_palette: Palette) -> None:
        out = tmp_path / "indexed.png"
        indices = bytes([0, 1, 2, 1, 1, 0])
        save_indexed_png(out, small_palette, indices, 3, 2)
        with Image.open(out) as img:
            assert img.mode == "P"
            assert img.size == (3, 2)
            assert "transparency" in img.info
            np.testing.assert_array_equal(np.asarray(img), [[0, 1, 2], [1, 1, 0]])
            rgba = np.asarray(img.convert("RGBA"))
        np.testing.assert_array_equal(rgba[0, 1], (255, 0, 0, 255))
        assert rgba[0, 2, 3] == 128
        assert rgba[0, 0, 3] == 0

    def test_opaque_palette_has_no_transparency(self, tmp_path: Path) -> None:
        out = tmp_path / "opaque.png"
        palette = Palette((Color(1, 2, 3, 255), Color(4, 5, 6, 255)))
        save_indexed_png(out, palette, bytes([0, 1]), 2, 1)
        with Image.open(out) as img:
            assert "transparency" not in img.info

    def test_expand_indices(self, small_palette: Palette) -> None:
        img = expand_indices(small_palette, bytes([1, 2, 0, 0]), 2, 2)
        assert img.shape == (2, 2, 4)
        np.testing.assert_array_equal(img[0, 0], (255, 0, 0, 255))
        np.testing.assert_array_equal(img[1, 1], (0, 0, 0, 0))

    def test_comparison_grid(self, tmp_path: Path, rgba_array: np.ndarray) -> None:
        out = tmp_path / "compare.png"
        make_comparison_grid(rgba_array, rgba_array, out, pixel_upscale=4)
        with Image.open(out) as img:
            assert img.width == 2 * W * 4 + 8
            assert img.height > H * 4


# -- CLI ---------------------------------------------------------------

class TestCli:
    def test_single(self, tmp_image: Path, tmp_path: Path) -> None:
        out = tmp_path / "out" / "result.png"
        result = runner.invoke(
            app, ["single", str(tmp_image), "-o", str(out), "-c", "16", "--compare"],
        )
        assert result.exit_code == 0, result.output
        with Image.open(out) as img:
            assert img.mode == "P"
            assert img.size == (W, H)
            assert np.asarray(img).max() < 16
        assert (out.parent / "result_comparison.png").exists()

    def test_single_default_output(self, tmp_image: Path) -> None:
        result = runner.invoke(app, ["single", str(tmp_image), "-d", "1.0"])
        assert result.exit_code == 0, result.output
        assert (tmp_image.parent / "test-fs8.png").exists()

    def test_quality_too_low_exit_code(self, tmp_image: Path, tmp_path: Path) -> None:
        out = tmp_path / "low.png"
        result = runner.invoke(
            app, ["single", str(tmp_image), "-o", str(out), "-c", "2", "-q", "95-100"],
        )
        assert result.exit_code == ErrorCode.QUALITY_TOO_LOW
        assert not out.exists()

    @pytest.mark.parametrize(
        "args",
        [["-c", "300"], ["-s", "0"], ["-q", "80-20"], ["-q", "high"], ["-d", "2"]],
    )
    def test_invalid_options(self, tmp_image: Path, args: list[str]) -> None:
        result = runner.invoke(app, ["single", str(tmp_image), *args])
        assert result.exit_code == 2

    def test_batch_shared_palette(self, tmp_path: Path, rgba_array: np.ndarray) -> None:
        src = tmp_path / "images"
        src.mkdir()
        Image.fromarray(rgba_array).save(src / "one.png")
        Image.fromarray(rgba_array[::-1]).save(src / "two.png")
        dst = tmp_path / "output"

        result = runner.invoke(
            app,
            ["batch", "-i", str(src), "-o", str(dst), "-c", "8", "--share-palette"],
        )
        assert result.exit_code == 0, result.output
        with Image.open(dst / "one.png") as a, Image.open(dst / "two.png") as b:
            assert a.getpalette() == b.getpalette()

    def test_batch_empty_folder(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["batch", "-i", str(tmp_path / "none")])
        assert result.exit_code == 0
        assert "No images found" in result.output

    def test_missing_file_exits_cleanly(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["single", str(tmp_path / "absent.png")])
        assert result.exit_code == 1
        assert "FileNotFoundError" in result.output
        assert "Traceback" not in result.output

    def test_unreadable_image_exits_cleanly(self, tmp_path: Path) -> None:
        bogus = tmp_path / "bogus.png"
        bogus.write_bytes(b"not an image")
        result = runner.invoke(app, ["single", str(bogus)])
        assert result.exit_code == 1
        assert "UnidentifiedImageError" in result.output
        assert not (tmp_path / "bogus-fs8.png").exists()

    def test_batch_unreadable_image(self, tmp_path: Path, rgba_array: np.ndarray) -> None:
        src = tmp_path / "images"
        src.mkdir()
        Image.fromarray(rgba_array).save(src / "good.png")
        (src / "zbad.png").write_bytes(b"not an image")
        result = runner.invoke(
            app, ["batch", "-i", str(src), "-o", str(tmp_path / "out"), "--share-palette"],
        )
        assert result.exit_code == 1
        assert "UnidentifiedImageError" in result.output
