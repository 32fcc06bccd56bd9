"""Unit tests for image preparation and naming."""
import io
from datetime import datetime

import pytest
from PIL import Image

from errors import InvalidImage
from imaging import check_extension, filename_stem, prepare_image, screenshot_filename, upload_filename
from tests.helpers import make_image


@pytest.mark.parametrize("name,expected", [
    ("inv oice#1.png", "inv oice#1"),
    ("archive.tar.gz", "archive.tar"),
    ("no_extension", "no_extension"),
    ("uploads/scan.jpeg", "scan"),
    ("", ""),
])
def test_filename_stem(name, expected):
    assert filename_stem(name) == expected


def test_screenshot_filename():
    assert screenshot_filename(datetime(2024, 2, 15, 10, 30, 5)) == "screenshot_2024-02-15T10-30-05.png"


def test_screenshot_filename_defaults_to_now():
    name = screenshot_filename()
    assert name.startswith("screenshot_")
    assert name.endswith(".png")


@pytest.mark.parametrize("name", ["scan.png", "SCAN.JPG", "a.jpeg", "b.gif", "c.bmp", "d.tiff", "e.webp"])
def test_accepted_extensions(name):
    check_extension(name)


@pytest.mark.parametrize("name", ["notes.txt", "scan.pdf", "png", ""])
def test_rejected_extensions(name):
    with pytest.raises(InvalidImage):
        check_extension(name)


@pytest.mark.parametrize("name,mime_type,expected", [
    ("scan.bmp", "image/png", "scan.png"),
    ("scan.gif", "image/png", "scan.png"),
    ("photo.tiff", "image/png", "photo.png"),
    ("scan.png", "image/png", "scan.png"),
    ("photo.JPEG", "image/jpeg", "photo.JPEG"),
    ("photo.jpg", "image/jpeg", "photo.jpg"),
    ("anim.gif", "image/gif", "anim.gif"),
])
def test_upload_filename(name, mime_type, expected):
    assert upload_filename(name, mime_type) == expected


class TestPrepareImage:
    def test_small_image_unchanged(self, png_bytes):
        content, content_type = prepare_image(png_bytes, max_dimension=100)

        assert content == png_bytes
        assert content_type == "image/png"

    def test_large_image_downsized(self):
        original = make_image(size=(200, 100))

        content, content_type = prepare_image(original, max_dimension=50)

        assert content_type == "image/png"
        with Image.open(io.BytesIO(content)) as img:
            assert img.size == (50, 25)

    def test_large_jpeg_stays_jpeg(self):
        original = make_image(size=(200, 100), fmt="JPEG")

        content, content_type = prepare_image(original, max_dimension=50)

        assert content_type == "image/jpeg"
        with Image.open(io.BytesIO(content)) as img:
            assert img.format == "JPEG"
            assert max(img.size) == 50

    def test_large_bmp_saved_as_png(self):
        original = make_image(size=(200, 100), fmt="BMP")

        content, content_type = prepare_image(original, max_dimension=50)

        assert content_type == "image/png"

    def test_garbage_rejected(self):
        with pytest.raises(InvalidImage):
            prepare_image(b"not an image at all")

    def test_unsupported_format_rejected(self):
        with pytest.raises(InvalidImage):
            prepare_image(make_image(fmt="PPM"))

    def test_decompression_bomb_rejected(self, monkeypatch):
        original = make_image(size=(40, 20))
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)

        with pytest.raises(InvalidImage):
            prepare_image(original)

    def test_downsizing_failure_falls_back(self, monkeypatch):
        original = make_image(size=(200, 100))

        def broken_thumbnail(*args, **kwargs):
            raise OSError("boom")

        monkeypatch.setattr(Image.Image, "thumbnail", broken_thumbnail)

        content, content_type = prepare_image(original, max_dimension=50)

        assert content == original
        assert content_type == "image/png"
