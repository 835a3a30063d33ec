# mediaqueue/utils/files.py
import os
import re
import secrets
import string
import time

_SLUG_RE = re.compile(r"[^a-z0-9_-]+")
_BASE36 = string.digits + string.ascii_lowercase

_SIZE_UNITS = ("B", "KB", "MB", "GB")


def format_file_size(num_bytes: int) -> str:
    """1536 -> '1.5 KB'. Ten hoogste GB."""
    if num_bytes <= 0:
        return "0 B"
    i = 0
    while num_bytes >= 1024 ** (i + 1) and i < len(_SIZE_UNITS) - 1:
        i += 1
    value = round(num_bytes / (1024 ** i), 1)
    # 10.0 -> '10'
    text = f"{value:.1f}".rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[i]}"


def file_extension(filename: str) -> str:
    _, ext = os.path.splitext(filename or "")
    return ext.lower().lstrip(".")


def default_title(filename: str) -> str:
    """Bestandsnaam zonder extensie, gebruikt als standaard metadata-titel."""
    stem, _ = os.path.splitext(os.path.basename(filename or ""))
    return stem or (filename or "")


def file_kind(content_type: str) -> str:
    ctype = (content_type or "").lower()
    if ctype.startswith("image/"):
        return "image"
    if ctype.startswith("video/"):
        return "video"
    if ctype.startswith("audio/"):
        return "audio"
    if any(k in ctype for k in ("pdf", "document", "text")):
        return "document"
    if any(k in ctype for k in ("zip", "rar", "archive")):
        return "archive"
    return "file"


def slugify(value: str, max_len: int = 64) -> str:
    value = (value or "").lower().strip()
    value = _SLUG_RE.sub("-", value)
    value = value.strip("-")[:max_len]
    return value or "na"


def new_item_id() -> str:
    """'<epoch-ms>-<9 base36 tekens>', uniek genoeg voor een queue in geheugen."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{int(time.time() * 1000)}-{suffix}"
