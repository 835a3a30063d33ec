# mediaqueue/schemas/uploads.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from mediaqueue.domain.uploads import MediaItem, QueueStats, UploadItem
from mediaqueue.utils.files import file_kind, format_file_size


class QueueStatsOut(BaseModel):
    pending: int
    uploading: int
    completed: int
    errors: int
    total: int

    @classmethod
    def from_stats(cls, stats: QueueStats) -> "QueueStatsOut":
        return cls(
            pending=stats.pending,
            uploading=stats.uploading,
            completed=stats.completed,
            errors=stats.errors,
            total=stats.total,
        )


class UploadItemOut(BaseModel):
    id: str
    name: str
    size: int
    size_label: str
    content_type: str
    kind: str
    status: str
    progress: int
    error: Optional[str] = None
    error_code: Optional[str] = None
    metadata: Dict[str, Any]
    preview_url: Optional[str] = None
    result: Optional[MediaItem] = None
    created_at: datetime

    @classmethod
    def from_item(cls, item: UploadItem) -> "UploadItemOut":
        return cls(
            id=item.id,
            name=item.source.name,
            size=item.source.size,
            size_label=format_file_size(item.source.size),
            content_type=item.source.content_type,
            kind=file_kind(item.source.content_type),
            status=item.status.value,
            progress=item.progress,
            error=item.error,
            error_code=item.error_code,
            metadata=dict(item.metadata),
            preview_url=item.preview.url if item.preview else None,
            result=item.result,
            created_at=item.created_at,
        )


class QueueOut(BaseModel):
    items: List[UploadItemOut]
    stats: QueueStatsOut
    is_uploading: bool = False


class MetadataUpdateIn(BaseModel):
    # title/alt_text/caption/description; andere sleutels mogen ook
    model_config = ConfigDict(extra="allow")

    title: Optional[str] = None
    alt_text: Optional[str] = None
    caption: Optional[str] = None
    description: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        return {k: v for k, v in self.model_dump().items() if v is not None}


class RunOut(BaseModel):
    results: List[MediaItem]
    stats: QueueStatsOut


class ClearOut(BaseModel):
    removed: int
