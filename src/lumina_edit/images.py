from __future__ import annotations

import base64
import binascii
import time
from io import BytesIO

from PIL import Image, UnidentifiedImageError

# Image handles are data URLs: "data:<mime>;base64,<payload>". They go to the
# gateway and come back from it in this shape, so nothing else is needed.
_DATA_PREFIX = "data:"
_BASE64_MARKER = ";base64"

# Multi-picture JPEGs from phone cameras open as MPO; the gateway only knows them as JPEG.
_FORMAT_MIME_OVERRIDES = {"MPO": "image/jpeg"}


def to_data_url(data: bytes, mime_type: str = "image/png") -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def parse_data_url(handle: str) -> tuple[str, bytes]:
    """
    Split a handle into (mime_type, raw bytes).

    A bare base64 payload (no "data:" header) is accepted and treated as PNG,
    which is what the gateway itself assumes when no type is given.
    """
    s = (handle or "").strip()
    if not s:
        raise ValueError("image handle is empty")

    mime_type = "image/png"
    payload = s
    if s.startswith(_DATA_PREFIX):
        header, sep, payload = s.partition(",")
        if not sep or not header.endswith(_BASE64_MARKER):
            raise ValueError("image handle must be a base64 data URL")
        declared = header[len(_DATA_PREFIX) : -len(_BASE64_MARKER)]
        if declared:
            mime_type = declared

    if not mime_type.startswith("image/"):
        raise ValueError(f"image handle has non-image type '{mime_type}'")

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("image handle payload is not valid base64") from exc
    if not data:
        raise ValueError("image handle payload is empty")
    return mime_type, data


def sniff_mime_type(content: bytes) -> str:
    """Return the image MIME type of uploaded bytes; ValueError if Pillow can't read them."""
    if not content:
        raise ValueError("uploaded file is empty")
    try:
        with Image.open(BytesIO(content)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise ValueError("uploaded file is not a readable image") from exc
    mime = _FORMAT_MIME_OVERRIDES.get(fmt or "") or Image.MIME.get(fmt or "")
    if not mime:
        raise ValueError(f"unsupported image format '{fmt}'")
    return mime


def upload_to_data_url(content: bytes) -> str:
    return to_data_url(content, sniff_mime_type(content))


def handle_to_png_bytes(handle: str) -> bytes:
    _, data = parse_data_url(handle)
    try:
        with Image.open(BytesIO(data)) as img:
            return _pil_to_png_bytes(img)
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError("image handle does not contain a readable image") from exc


def download_filename(now_ms: int | None = None) -> str:
    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"lumina-edit-{ts}.png"


def _pil_to_png_bytes(img: Image.Image) -> bytes:
    buf = BytesIO()
    if img.mode not in ("RGB", "RGBA", "L", "LA", "P"):
        img = img.convert("RGBA")
    img.save(buf, format="PNG")
    return buf.getvalue()
