# mediaqueue/domain/uploads.py
from __future__ import annotations

import io
import mimetypes
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Dict, FrozenSet, Optional, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, field_validator

if TYPE_CHECKING:
    from mediaqueue.core.settings import UploadSettings
    from mediaqueue.services.previews import PreviewHandle


class UploadStatus(str, Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    ERROR = "error"


# Toegestane overgangen; error -> pending alleen via retry.
ALLOWED_TRANSITIONS: Dict[UploadStatus, FrozenSet[UploadStatus]] = {
    UploadStatus.PENDING: frozenset({UploadStatus.UPLOADING, UploadStatus.ERROR}),
    UploadStatus.UPLOADING: frozenset({UploadStatus.COMPLETED, UploadStatus.ERROR}),
    UploadStatus.COMPLETED: frozenset(),
    UploadStatus.ERROR: frozenset({UploadStatus.PENDING}),
}


@dataclass(frozen=True)
class SourceFile:
    """
    Raw file content plus what the browser/CLI declared about it.
    Either `data` or `path` is set.
    """

    name: str
    size: int
    content_type: str = ""
    data: Optional[bytes] = field(default=None, repr=False)
    path: Optional[Path] = None

    @classmethod
    def from_bytes(cls, name: str, data: bytes, content_type: Optional[str] = None) -> "SourceFile":
        ctype = content_type if content_type is not None else (mimetypes.guess_type(name)[0] or "")
        return cls(name=name, size=len(data), content_type=ctype, data=data)

    @classmethod
    def from_path(cls, path: Path | str, content_type: Optional[str] = None) -> "SourceFile":
        p = Path(path)
        ctype = content_type if content_type is not None else (mimetypes.guess_type(p.name)[0] or "")
        return cls(name=p.name, size=p.stat().st_size, content_type=ctype, path=p)

    def open(self) -> BinaryIO:
        if self.data is not None:
            return io.BytesIO(self.data)
        if self.path is not None:
            return open(self.path, "rb")
        raise ValueError(f"SourceFile {self.name!r} has no content")

    def read(self) -> bytes:
        with self.open() as fh:
            return fh.read()


@dataclass(frozen=True)
class ValidationPolicy:
    max_file_size: int
    allowed_types: FrozenSet[str] = frozenset()
    allowed_extensions: FrozenSet[str] = frozenset()

    @classmethod
    def from_settings(cls, settings: "UploadSettings") -> "ValidationPolicy":
        return cls(
            max_file_size=settings.max_upload_bytes,
            allowed_types=frozenset(settings.allowed_mime_set),
            allowed_extensions=frozenset(settings.allowed_extension_set),
        )


class MediaItem(BaseModel):
    """Remote media record as returned by the media API."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: Optional[str] = None
    path: Optional[str] = None
    url: Optional[str] = None
    type: Optional[str] = None
    size: Optional[int] = None
    mime_type: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v):
        # de API geeft soms numerieke ids terug
        return str(v) if isinstance(v, int) else v


@dataclass
class UploadOptions:
    folder_id: Optional[int] = None
    destination_folder: Optional[str] = None
    is_public: Optional[bool] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    generate_variants: Optional[bool] = None
    max_width: Optional[int] = None
    max_height: Optional[int] = None
    quality: Optional[int] = None


@dataclass
class UploadItem:
    id: str
    source: SourceFile
    status: UploadStatus = UploadStatus.PENDING
    progress: int = 0
    error: Optional[str] = None
    error_code: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    preview: Optional["PreviewHandle"] = None
    result: Optional[MediaItem] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class QueueStats:
    pending: int = 0
    uploading: int = 0
    completed: int = 0
    errors: int = 0
    total: int = 0
