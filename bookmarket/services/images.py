from __future__ import annotations

import io
import os
import uuid

from PIL import Image

from ..config import settings
from ..logs import get_logger

log = get_logger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}

START_QUALITY = 75
MIN_QUALITY = 10
QUALITY_STEP = 5


def validate_upload(filename: str | None, data: bytes) -> None:
    if not data:
        raise ValueError("One or more images are empty.")
    if len(data) > settings.MAX_IMAGE_BYTES:
        raise ValueError("Image size must be less than 5MB.")
    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValueError("Only JPG, PNG, and WebP images are allowed.")


def compress_to_jpeg(data: bytes, target_bytes: int | None = None) -> bytes:
    """Re-encode as JPEG, lowering quality until the result fits target_bytes or quality bottoms out."""
    target = target_bytes or settings.IMAGE_TARGET_BYTES
    # undecodable data raises PIL.UnidentifiedImageError and surfaces as a 500
    with Image.open(io.BytesIO(data)) as img:
        rgb = img.convert("RGB")

    quality = START_QUALITY
    buf = io.BytesIO()
    rgb.save(buf, format="JPEG", quality=quality, optimize=True)
    while buf.tell() > target and quality > MIN_QUALITY:
        quality -= QUALITY_STEP
        buf = io.BytesIO()
        rgb.save(buf, format="JPEG", quality=quality, optimize=True)
    return buf.getvalue()


def _abs(rel_path: str) -> str:
    return os.path.join(settings.MEDIA_ROOT, *rel_path.split("/"))


def save_images(files: list[tuple[str, bytes]]) -> list[str]:
    """
    Validate, compress and store uploads. Returns paths relative to MEDIA_ROOT
    in upload order. On any failure the files written so far are removed.
    """
    for name, data in files:
        validate_upload(name, data)

    folder = os.path.join(settings.MEDIA_ROOT, *settings.LISTING_IMAGE_DIR.split("/"))
    os.makedirs(folder, exist_ok=True)

    saved: list[str] = []
    try:
        for name, data in files:
            jpeg = compress_to_jpeg(data)
            rel = f"{settings.LISTING_IMAGE_DIR}/{uuid.uuid4().hex}.jpg"
            with open(_abs(rel), "wb") as f:
                f.write(jpeg)
            saved.append(rel)
    except Exception:
        log.warning("image processing failed, removing %d saved file(s)", len(saved))
        delete_images(saved)
        raise
    return saved


def delete_images(paths: list[str]) -> int:
    """Best effort: failures are logged, never raised."""
    deleted = 0
    for rel in paths:
        path = _abs(rel)
        if not os.path.exists(path):
            continue
        try:
            os.remove(path)
            deleted += 1
        except OSError:
            log.exception("failed to delete image %s", path)
    return deleted
