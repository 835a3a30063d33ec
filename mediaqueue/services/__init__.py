# Services package for the media upload queue

from .previews import PreviewHandle, PreviewManager
from .queue_store import QueueStore
from .upload_executor import UploadExecutor
from .uploader import MediaUploader

__all__ = [
    "PreviewHandle",
    "PreviewManager",
    "QueueStore",
    "UploadExecutor",
    "MediaUploader",
]
