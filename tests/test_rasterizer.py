"""Tests for half-block image rasterization."""

from __future__ import annotations

import io

import pytest
from PIL import Image

from md2paper.exceptions import ImageDecodeError
from md2paper.rasterizer import load_image, rasterize, to_hex

RED = (255, 0, 0)


def encode(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


class TestRasterize:
    def test_two_pixel_rows_per_cell(self) -> None:
        cells = rasterize(encode(Image.new("RGB", (4, 4), RED)), 10)
        assert len(cells) == 2
        assert all(len(row) == 4 for row in cells)
        assert cells[0][0] == (RED, RED)

    def test_top_and_bottom_pixels(self) -> None:
        image = Image.new("RGB", (1, 2))
        image.putpixel((0, 0), (255, 255, 255))
        image.putpixel((0, 1), (0, 0, 0))
        assert rasterize(encode(image), 10) == [[((255, 255, 255), (0, 0, 0))]]

    def test_scaled_down_to_width(self) -> None:
        cells = rasterize(encode(Image.new("RGB", (40, 10), RED)), 20)
        assert len(cells[0]) == 20
        assert len(cells) == 3

    def test_never_scaled_up(self) -> None:
        cells = rasterize(encode(Image.new("RGB", (3, 6), RED)), 80)
        assert len(cells[0]) == 3

    def test_transparency_blends_onto_background(self) -> None:
        image = Image.new("RGBA", (2, 2), (0, 0, 0, 0))
        cells = rasterize(encode(image), 10, background=(10, 20, 30))
        assert cells == [[((10, 20, 30), (10, 20, 30))] * 2]

    def test_garbage(self) -> None:
        with pytest.raises(ImageDecodeError):
            rasterize(b"not an image", 10)

    def test_decompression_bomb(self, monkeypatch: pytest.MonkeyPatch) -> None:
        data = encode(Image.new("RGB", (10, 10), RED))
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)
        with pytest.raises(ImageDecodeError):
            rasterize(data, 10)


class TestLoadImage:
    def test_relative_to_base_dir(self, tmp_path) -> None:
        (tmp_path / "pic.png").write_bytes(b"data")
        assert load_image("pic.png", tmp_path) == b"data"

    def test_file_url(self, tmp_path) -> None:
        path = tmp_path / "pic.png"
        path.write_bytes(b"data")
        assert load_image(f"file://{path}") == b"data"

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(ImageDecodeError, match="cannot read"):
            load_image("missing.png", tmp_path)

    def test_remote_url(self) -> None:
        with pytest.raises(ImageDecodeError, match="remote"):
            load_image("https://example.com/logo.png")


def test_to_hex() -> None:
    assert to_hex((255, 0, 16)) == "#ff0010"
