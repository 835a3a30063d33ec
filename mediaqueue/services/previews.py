# mediaqueue/services/previews.py
from __future__ import annotations

import logging
import os
import tempfile
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from PIL import Image, UnidentifiedImageError

from mediaqueue.domain.uploads import SourceFile
from mediaqueue.utils.files import file_extension

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreviewHandle:
    """Locally addressable preview of an item's content (a temp file)."""

    id: str
    path: Path
    content_type: str = field(default="image/png")

    @property
    def url(self) -> str:
        return self.path.resolve().as_uri()


class PreviewManager:
    """
    Scoped preview resources: every handle from `acquire` is released
    exactly once via `release`.
    """

    def __init__(self, directory: Optional[str] = None, max_px: int = 320):
        self.directory = Path(directory) if directory else None
        if self.directory is not None:
            self.directory.mkdir(parents=True, exist_ok=True)
        self.max_px = max_px
        self._live: Dict[str, PreviewHandle] = {}
        self.acquired_count = 0
        self.released_count = 0

    @staticmethod
    def supports(file: SourceFile) -> bool:
        return (file.content_type or "").lower().startswith("image/")

    @property
    def live_count(self) -> int:
        return len(self._live)

    def acquire(self, file: SourceFile) -> Optional[PreviewHandle]:
        if not self.supports(file):
            return None
        try:
            handle = self._write_thumbnail(file)
        except Image.DecompressionBombError as e:
            # geldig bestand, maar te veel pixels om te decoderen: geen preview
            logger.warning("Preview skipped for %s: %s", file.name, e)
            return None
        except (UnidentifiedImageError, OSError, ValueError) as e:
            # bv. SVG of kapotte afbeelding: ruwe kopie als preview
            logger.debug("Thumbnail failed for %s (%s), using raw copy", file.name, e)
            try:
                handle = self._write_raw(file)
            except (OSError, ValueError) as e2:
                logger.warning("Preview unavailable for %s: %s", file.name, e2)
                return None

        self._live[handle.id] = handle
        self.acquired_count += 1
        logger.debug("Preview acquired id=%s path=%s", handle.id, handle.path)
        return handle

    def release(self, handle: Optional[PreviewHandle]) -> bool:
        if handle is None:
            return False
        if self._live.pop(handle.id, None) is None:
            logger.warning("Preview %s already released, ignoring", handle.id)
            return False
        try:
            handle.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("Could not delete preview %s: %s", handle.path, e)
        self.released_count += 1
        logger.debug("Preview released id=%s", handle.id)
        return True

    def release_all(self) -> int:
        count = 0
        for handle in list(self._live.values()):
            if self.release(handle):
                count += 1
        return count

    # ---------- helpers ----------

    def _new_path(self, suffix: str) -> Path:
        fd, name = tempfile.mkstemp(
            prefix="preview-",
            suffix=suffix,
            dir=str(self.directory) if self.directory else None,
        )
        os.close(fd)
        return Path(name)

    def _write_thumbnail(self, file: SourceFile) -> PreviewHandle:
        with file.open() as fh, Image.open(fh) as img:
            img.load()
            if img.mode not in ("RGB", "RGBA", "L", "LA", "P"):
                img = img.convert("RGB")
            img.thumbnail((self.max_px, self.max_px))
            path = self._new_path(".png")
            try:
                img.save(path, format="PNG")
            except OSError:
                path.unlink(missing_ok=True)
                raise
        return PreviewHandle(id=uuid.uuid4().hex, path=path, content_type="image/png")

    def _write_raw(self, file: SourceFile) -> PreviewHandle:
        ext = file_extension(file.name)
        path = self._new_path(f".{ext}" if ext else "")
        path.write_bytes(file.read())
        return PreviewHandle(id=uuid.uuid4().hex, path=path, content_type=file.content_type)
