# mediaqueue/core/errors.py
from __future__ import annotations

from typing import Any, Dict, Optional

# Stable error codes (stored on UploadItem.error_code)
CODE_TOO_LARGE = "too_large"
CODE_INVALID_TYPE = "invalid_type"
CODE_TRANSFER_FAILED = "transfer_failed"

DEFAULT_TRANSFER_MESSAGE = "Upload failed"
CANCELLED_TRANSFER_MESSAGE = "Upload cancelled"


class UploadQueueError(Exception):
    """Base class for everything the upload queue raises on purpose."""

    code: str = "upload_queue_error"

    def __init__(self, message: str = "", meta: Optional[Dict[str, Any]] = None):
        self.message = str(message)
        self.meta = meta or {}
        super().__init__(self.message)


# =========================
# Validation (local, no network)
# =========================
class ValidationError(UploadQueueError):
    code = "validation_error"


class FileTooLargeError(ValidationError):
    code = CODE_TOO_LARGE


class InvalidFileTypeError(ValidationError):
    code = CODE_INVALID_TYPE


# =========================
# Transfer (remote service)
# =========================
class TransferError(UploadQueueError):
    """
    Raised by upload service adapters. Always recoverable via an explicit
    retry, never retried automatically.
    """

    code = CODE_TRANSFER_FAILED

    def __init__(
        self,
        message: str = "",
        status_code: Optional[int] = None,
        meta: Optional[Dict[str, Any]] = None,
    ):
        self.status_code = status_code
        super().__init__(message, meta)


# =========================
# Queue bookkeeping
# =========================
class ItemNotFoundError(UploadQueueError):
    code = "not_found"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Unknown upload item: {item_id}", {"item_id": item_id})


class DuplicateItemError(UploadQueueError):
    code = "duplicate_item"


class InvalidStateError(UploadQueueError):
    code = "invalid_state"


class InvalidTransitionError(InvalidStateError):
    code = "invalid_transition"
