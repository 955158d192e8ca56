import re
from dataclasses import dataclass
from pathlib import PurePath
from typing import Iterable, Optional

from .errors import ValidationError

IMAGE_EXTS = ("jpg", "jpeg", "png", "webp")
VIDEO_EXTS = ("mp4",)

_DISALLOWED_ID_CHARS = re.compile(r"[^A-Z0-9_]+")
_SAFE_KEY = re.compile(r"[A-Za-z0-9_-]+")
_FIELD_NAME = re.compile(r"^(?:files\[(?P<wrapped>[^\]]+)\]|(?P<bare>[^\[\]]+))(?:\[\])?$")
_DATA_FIELD = re.compile(r"^data\[(?P<key>.+)\]$")


@dataclass(frozen=True)
class Identity:
    id: str
    label: str


def normalize_id(raw: Optional[str]) -> str:
    """Uppercase slug limited to ``[A-Z0-9_]`` with no leading/trailing underscores."""
    if not raw:
        return ""
    return _DISALLOWED_ID_CHARS.sub("_", raw.strip().upper()).strip("_")


def base_name_no_ext(filename: Optional[str]) -> str:
    if not filename:
        return ""
    # browsers on Windows may send the full client path
    return PurePath(filename.replace("\\", "/")).stem


def label_from_base(base: str) -> str:
    label = re.sub(r"[_\-]+", " ", base)
    return re.sub(r"\s+", " ", label).strip().upper()


def derive_identity(raw_id: Optional[str], raw_label: Optional[str], filenames: Iterable[str]) -> Identity:
    """Resolve the design id and label once for a whole request.

    An explicit id wins. Otherwise the first uploaded file with a usable
    base name supplies both, e.g. ``Blue Marble.png`` gives
    ``BLUE_MARBLE`` / ``BLUE MARBLE``. The id is empty when nothing fits.
    """
    label = (raw_label or "").strip()
    design_id = normalize_id(raw_id)
    if design_id:
        return Identity(design_id, label or (raw_id or "").strip())
    for filename in filenames:
        base = base_name_no_ext(filename)
        if base:
            return Identity(normalize_id(base), label or label_from_base(base))
    return Identity("", label)


def file_ext(filename: Optional[str]) -> str:
    suffix = PurePath((filename or "").replace("\\", "/")).suffix
    return suffix.lower().lstrip(".")


def safe_ext(filename: Optional[str], allowed: Iterable[str]) -> Optional[str]:
    ext = file_ext(filename)
    return ext if ext and ext in allowed else None


def parse_field_name(field: str) -> str:
    """Strip the multipart naming convention from a file field.

    >>> parse_field_name("files[hero]")
    'hero'
    >>> parse_field_name("files[gallery][]")
    'gallery'
    >>> parse_field_name("variants[]")
    'variants'
    >>> parse_field_name("preview")
    'preview'
    """
    m = _FIELD_NAME.match(field.strip())
    if not m:
        return field.strip()
    return m.group("wrapped") or m.group("bare")


def field_key(field: str) -> str:
    """Field name usable as a file name stem, or ValidationError.

    Only letters, digits, ``_`` and ``-`` are accepted, so a key can never
    climb out of its asset directory.
    """
    key = parse_field_name(field)
    if not _SAFE_KEY.fullmatch(key):
        raise ValidationError(f"Invalid file field name: {field!r}")
    return key


def parse_data_key(field: str) -> Optional[str]:
    """``data[size_text]`` -> ``size_text``; anything else -> None."""
    m = _DATA_FIELD.match(field)
    return m.group("key") if m else None


def parse_faces(value: Optional[str]) -> int:
    m = re.match(r"^\s*([+-]?\d+)", value or "")
    return int(m.group(1)) if m else 0
