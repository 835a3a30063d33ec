# mediaqueue/services/validation_uploads.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from mediaqueue.core.errors import (
    CODE_INVALID_TYPE,
    CODE_TOO_LARGE,
    FileTooLargeError,
    InvalidFileTypeError,
)
from mediaqueue.domain.uploads import SourceFile, ValidationPolicy
from mediaqueue.utils.files import file_extension, format_file_size


@dataclass(frozen=True)
class ValidationOutcome:
    ok: bool
    code: Optional[str] = None
    reason: Optional[str] = None

    @staticmethod
    def passed() -> "ValidationOutcome":
        return ValidationOutcome(ok=True)

    @staticmethod
    def failed(code: str, reason: str) -> "ValidationOutcome":
        return ValidationOutcome(ok=False, code=code, reason=reason)

    def __bool__(self) -> bool:
        return self.ok


def mime_matches(content_type: str, patterns: Iterable[str]) -> bool:
    """'image/png' matcht 'image/png', 'image/*' en '*/*'."""
    ctype = (content_type or "").strip().lower()
    if not ctype:
        return False
    for pattern in patterns:
        p = pattern.strip().lower()
        if p == ctype or p == "*/*":
            return True
        if p.endswith("/*") and ctype.startswith(p[:-1]):
            return True
    return False


def validate_size(size_bytes: int, policy: ValidationPolicy) -> ValidationOutcome:
    if size_bytes > policy.max_file_size:
        return ValidationOutcome.failed(
            CODE_TOO_LARGE,
            f"File exceeds the maximum size of {format_file_size(policy.max_file_size)}",
        )
    return ValidationOutcome.passed()


def validate_type(content_type: str, filename: str, policy: ValidationPolicy) -> ValidationOutcome:
    if mime_matches(content_type, policy.allowed_types):
        return ValidationOutcome.passed()
    # fallback: extensie uit de bestandsnaam
    ext = file_extension(filename)
    if ext and ext in policy.allowed_extensions:
        return ValidationOutcome.passed()
    return ValidationOutcome.failed(CODE_INVALID_TYPE, "File type is not allowed")


def validate(file: SourceFile, policy: ValidationPolicy) -> ValidationOutcome:
    """Pure check: size first, then MIME type with extension fallback."""
    outcome = validate_size(file.size, policy)
    if not outcome.ok:
        return outcome
    return validate_type(file.content_type, file.name, policy)


def raise_for_outcome(outcome: ValidationOutcome) -> None:
    if outcome.ok:
        return
    if outcome.code == CODE_TOO_LARGE:
        raise FileTooLargeError(outcome.reason or "")
    raise InvalidFileTypeError(outcome.reason or "")
