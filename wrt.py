"""
Encoding of extracted text into downloadable .wrt files.

``notepad-compatible`` output is UTF-8 with a BOM and CRLF line endings, so
Notepad++ picks the encoding up automatically. ``plain`` passes the text
through untouched.
"""
import re
from dataclasses import dataclass
from typing import Dict

from errors import InvalidInput

WRT_EXTENSION = ".wrt"
DEFAULT_STEM = "extracted_text"
BOM = "\ufeff"

PLAIN = "plain"
NOTEPAD_COMPATIBLE = "notepad-compatible"

VARIANTS = {
    PLAIN: "application/octet-stream",
    NOTEPAD_COMPATIBLE: "application/octet-stream; charset=utf-8",
}

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9_\-.]")


@dataclass(frozen=True)
class DownloadPayload:
    content: bytes
    filename: str
    content_type: str
    length: int
    variant: str = NOTEPAD_COMPATIBLE

    def headers(self) -> Dict[str, str]:
        headers = {
            "Content-Disposition": f'attachment; filename="{self.filename}"',
            "Cache-Control": "no-cache",
        }
        if self.variant == NOTEPAD_COMPATIBLE:
            headers["Content-Length"] = str(self.length)
        return headers


def sanitize_filename(stem: str) -> str:
    """Replace anything outside [A-Za-z0-9_.-] with '_' and add the .wrt extension"""
    safe = _UNSAFE_FILENAME_CHARS.sub("_", stem or DEFAULT_STEM)
    return f"{safe}{WRT_EXTENSION}"


def normalize_line_endings(text: str) -> str:
    """Convert any mix of CRLF, CR and LF to CRLF"""
    return text.replace("\r\n", "\n").replace("\r", "\n").replace("\n", "\r\n")


def encode(text: str, filename_stem: str = DEFAULT_STEM, variant: str = NOTEPAD_COMPATIBLE) -> DownloadPayload:
    if not isinstance(text, str):
        raise InvalidInput(f"Download text must be a string, got {type(text).__name__}")
    if variant not in VARIANTS:
        raise InvalidInput(f"Unknown download variant: {variant!r}")

    if variant == NOTEPAD_COMPATIBLE:
        content = (BOM + normalize_line_endings(text)).encode("utf-8")
    else:
        content = text.encode("utf-8")

    return DownloadPayload(
        content=content,
        filename=sanitize_filename(filename_stem),
        content_type=VARIANTS[variant],
        length=len(content),
        variant=variant,
    )
