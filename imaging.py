import io
import logging
import os
import re
from datetime import datetime, timezone
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from errors import InvalidImage

ACCEPTED_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".bmp", ".tiff", ".webp")

# Pillow format name -> format used when re-saving a downsized copy
ACCEPTED_FORMATS = {
    'PNG': 'PNG',
    'JPEG': 'JPEG',
    'GIF': 'PNG',
    'BMP': 'PNG',
    'TIFF': 'PNG',
    'WEBP': 'WEBP',
}

_MIME_EXTENSIONS = {
    'image/png': ('.png',),
    'image/jpeg': ('.jpg', '.jpeg'),
    'image/webp': ('.webp',),
}

_EXTENSION = re.compile(r"\.[^.]+$")


def filename_stem(filename: str) -> str:
    """Drop the last extension: 'inv oice#1.png' -> 'inv oice#1'"""
    return _EXTENSION.sub("", os.path.basename(filename or ""))


def screenshot_filename(now: Optional[datetime] = None) -> str:
    """Name given to screen captures, e.g. screenshot_2024-02-15T10-30-00.png"""
    now = now or datetime.now(timezone.utc)
    return f"screenshot_{now.strftime('%Y-%m-%dT%H-%M-%S')}.png"


def check_extension(filename: str) -> None:
    if not filename.lower().endswith(ACCEPTED_EXTENSIONS):
        raise InvalidImage(
            f"Unsupported file type: {filename}. Accepted: {', '.join(ACCEPTED_EXTENSIONS)}"
        )


def upload_filename(filename: str, mime_type: str) -> str:
    """Swap the extension when prepare_image re-encoded to a different format"""
    extensions = _MIME_EXTENSIONS.get(mime_type)
    if not extensions or filename.lower().endswith(extensions):
        return filename
    return _EXTENSION.sub("", filename) + extensions[0]


def prepare_image(image_bytes: bytes, max_dimension: int = 4096) -> Tuple[bytes, str]:
    """
    Validate an uploaded image and shrink it if either side exceeds max_dimension.

    Returns the bytes to upload and their MIME type. Invalid images raise
    InvalidImage; a failure while shrinking falls back to the original bytes.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            img_format = img.format
            size = img.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise InvalidImage(f"Could not read image: {str(e)}")

    if img_format not in ACCEPTED_FORMATS:
        raise InvalidImage(f"Unsupported image format: {img_format}")

    mime_type = Image.MIME.get(img_format, "application/octet-stream")
    if max(size) <= max_dimension:
        return image_bytes, mime_type

    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            output_format = ACCEPTED_FORMATS[img_format]
            if output_format == 'JPEG' and img.mode not in ('RGB', 'L'):
                img = img.convert('RGB')
            img.thumbnail((max_dimension, max_dimension), Image.LANCZOS)

            output = io.BytesIO()
            if output_format == 'JPEG':
                img.save(output, format=output_format, quality=90, optimize=True)
            else:
                img.save(output, format=output_format)
            logging.info(f"Downsized image from {size} to {img.size}")
            return output.getvalue(), Image.MIME.get(output_format, mime_type)
    except Exception as e:
        logging.warning(f"Image downsizing failed, using original: {str(e)}")
        return image_bytes, mime_type
