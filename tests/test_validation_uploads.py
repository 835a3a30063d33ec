import pytest

from mediaqueue.core.errors import FileTooLargeError, InvalidFileTypeError
from mediaqueue.domain.uploads import SourceFile, ValidationPolicy
from mediaqueue.services.validation_uploads import (
    mime_matches,
    raise_for_outcome,
    validate,
)

from tests.factories import MB


def _file(name, size=1024, ctype=""):
    return SourceFile(name=name, size=size, content_type=ctype, data=b"")


def test_accepts_allowed_mime(policy):
    outcome = validate(_file("a.png", ctype="image/png"), policy)
    assert outcome.ok
    assert outcome.code is None and outcome.reason is None


def test_too_large_is_checked_before_type(policy):
    outcome = validate(_file("clip.exe", size=50 * MB, ctype="application/x-msdownload"), policy)
    assert not outcome.ok
    assert outcome.code == "too_large"
    assert "10 MB" in outcome.reason


def test_size_equal_to_limit_passes(policy):
    assert validate(_file("a.pdf", size=10 * MB, ctype="application/pdf"), policy).ok


def test_extension_fallback_when_mime_unknown(policy):
    # browsers sturen soms een leeg of generiek type mee
    outcome = validate(_file("Report.DOCX", ctype="application/octet-stream"), policy)
    assert outcome.ok


def test_invalid_type_without_matching_extension(policy):
    outcome = validate(_file("script.exe", ctype="application/x-msdownload"), policy)
    assert not outcome.ok
    assert outcome.code == "invalid_type"


def test_file_without_extension_and_type_is_rejected(policy):
    assert validate(_file("README"), policy).code == "invalid_type"


@pytest.mark.parametrize(
    "ctype,patterns,expected",
    [
        ("image/png", {"image/png"}, True),
        ("image/webp", {"image/*"}, True),
        ("IMAGE/JPEG", {"image/*"}, True),
        ("video/mp4", {"image/*"}, False),
        ("application/pdf", {"*/*"}, True),
        ("", {"*/*"}, False),
    ],
)
def test_mime_matches(ctype, patterns, expected):
    assert mime_matches(ctype, patterns) is expected


def test_validate_is_pure():
    policy = ValidationPolicy(max_file_size=100, allowed_types=frozenset({"image/png"}))
    f = _file("x.png", size=10, ctype="image/png")
    assert validate(f, policy) == validate(f, policy)


def test_raise_for_outcome_maps_codes(policy):
    with pytest.raises(FileTooLargeError):
        raise_for_outcome(validate(_file("a.png", size=11 * MB, ctype="image/png"), policy))
    with pytest.raises(InvalidFileTypeError):
        raise_for_outcome(validate(_file("a.exe"), policy))
    raise_for_outcome(validate(_file("a.png", ctype="image/png"), policy))
