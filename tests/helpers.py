"""Shared test helpers."""
import io

from PIL import Image


def make_image(size=(40, 20), fmt="PNG") -> bytes:
    """Encode a blank white image."""
    output = io.BytesIO()
    Image.new("RGB", size, color=(255, 255, 255)).save(output, format=fmt)
    return output.getvalue()
