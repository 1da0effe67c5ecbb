# -*- coding: utf-8 -*-
"""
העלאת מדיה: אופטימיזציה של תמונות עם Pillow לפי פריסט, שמירה ל-static/uploads
ורישום ב-collection של media.
"""

from __future__ import annotations

import logging
import mimetypes
import os
import secrets
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Dict, Optional

from PIL import Image, ImageOps, UnidentifiedImageError
from werkzeug.utils import secure_filename

from . import storage

LOGGER = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 50 * 1024 * 1024

ALLOWED_MIMETYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "application/pdf": ".pdf",
}

FOLDERS = ("general", "hero", "gallery", "floor-plans", "documents", "extracted", "classified")


class MediaError(ValueError):
    """Upload rejected (type, size, unreadable image)."""


@dataclass(frozen=True)
class Preset:
    width: int
    height: int
    quality: int


# פריסטים לפי שימוש
PRESETS: Dict[str, Optional[Preset]] = {
    "hero": Preset(1920, 1080, 85),
    "gallery": Preset(1200, 800, 80),
    "floor-plans": Preset(1600, 1200, 90),
    "thumbnail": Preset(400, 300, 70),
    "extracted": Preset(800, 600, 75),
    "classified": Preset(800, 600, 75),
    "documents": None,
}
DEFAULT_PRESET = "gallery"

# תיקייה בשם של פריסט משתמשת בו, השאר gallery
FOLDER_PRESETS = {folder: folder for folder in FOLDERS if folder in PRESETS}


def upload_root(static_folder: str) -> str:
    return os.path.join(static_folder, "uploads")


def guess_mimetype(filename: str, declared: Optional[str] = None) -> str:
    declared = (declared or "").split(";")[0].strip().lower()
    if declared in ALLOWED_MIMETYPES:
        return declared
    guessed, _ = mimetypes.guess_type(filename or "")
    return (guessed or declared or "application/octet-stream").lower()


def check_upload(filename: str, mimetype: str, size: int) -> None:
    if mimetype not in ALLOWED_MIMETYPES:
        raise MediaError(f"File type not allowed: {mimetype}")
    if size > MAX_UPLOAD_BYTES:
        raise MediaError("File too large (max 50MB)")
    if size == 0:
        raise MediaError("Empty file")
    if not secure_filename(filename or ""):
        raise MediaError("Invalid file name")


def optimize_image(data: bytes, preset: str = DEFAULT_PRESET) -> Dict[str, Any]:
    """
    מחזיר {"data", "width", "height", "format"}.
    סיבוב לפי EXIF, שומר יחס, לא מגדיל, פלט WebP.
    """
    box = PRESETS.get(preset, PRESETS[DEFAULT_PRESET])
    try:
        with Image.open(BytesIO(data)) as im:
            im = ImageOps.exif_transpose(im)
            if box is None:
                return {"data": data, "width": im.width, "height": im.height, "format": None}
            if im.mode not in ("RGB", "RGBA"):
                im = im.convert("RGBA" if "A" in im.getbands() else "RGB")
            # thumbnail() אף פעם לא מגדיל
            im.thumbnail((box.width, box.height), Image.LANCZOS)
            buf = BytesIO()
            im.save(buf, "WEBP", quality=box.quality, method=6)
            return {"data": buf.getvalue(), "width": im.width, "height": im.height, "format": "webp"}
    except (UnidentifiedImageError, OSError) as e:
        raise MediaError(f"Unreadable image: {e}") from e


def save_upload(static_folder: str, filename: str, data: bytes, mimetype: Optional[str] = None,
                folder: str = "general", preset: Optional[str] = None,
                alt_text: Optional[str] = None, alt_text_en: str = "") -> Dict[str, Any]:
    mimetype = guess_mimetype(filename, mimetype)
    check_upload(filename, mimetype, len(data))
    folder = folder if folder in FOLDERS else "general"

    width = height = None
    ext = ALLOWED_MIMETYPES[mimetype]
    out_type = mimetype
    # GIF נשמר כמו שהוא (אנימציה)
    if mimetype.startswith("image/") and mimetype != "image/gif":
        result = optimize_image(data, preset or FOLDER_PRESETS.get(folder, DEFAULT_PRESET))
        data, width, height = result["data"], result["width"], result["height"]
        if result["format"] == "webp":
            ext, out_type = ".webp", "image/webp"

    base = os.path.splitext(secure_filename(filename))[0][:40] or "file"
    stored_name = f"{base}-{secrets.token_hex(8)}{ext}"
    target_dir = os.path.join(upload_root(static_folder), folder)
    os.makedirs(target_dir, exist_ok=True)
    with open(os.path.join(target_dir, stored_name), "wb") as f:
        f.write(data)

    record = storage.media.create({
        "name": filename,
        "fileName": stored_name,
        "type": out_type,
        "url": f"/static/uploads/{folder}/{stored_name}",
        "size": len(data),
        "width": width,
        "height": height,
        "altText": alt_text if alt_text is not None else os.path.splitext(filename)[0],
        "altTextEn": alt_text_en,
        "folder": folder,
    })
    LOGGER.info("media saved %s (%d bytes)", record["url"], len(data))
    return record


def delete_media(static_folder: str, media_id: str) -> bool:
    record = storage.media.get(media_id)
    if not record:
        return False
    path = _stored_path(static_folder, record.get("url") or "")
    if path:
        try:
            os.remove(path)
        except FileNotFoundError:
            LOGGER.warning("media file already missing: %s", path)
        except OSError as e:
            raise MediaError(f"Could not delete file: {e}") from e
    return storage.media.delete(media_id)


def _stored_path(static_folder: str, url: str) -> Optional[str]:
    """נתיב הקובץ על הדיסק, רק אם הוא בתוך תיקיית ה-uploads."""
    if not url.startswith("/static/"):
        return None
    root = os.path.realpath(upload_root(static_folder))
    path = os.path.realpath(os.path.join(static_folder, url[len("/static/"):]))
    if os.path.commonpath([root, path]) != root or path == root:
        LOGGER.warning("refusing to delete outside uploads: %s", url)
        return None
    return path
