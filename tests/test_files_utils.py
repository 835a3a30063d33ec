import re

import pytest

from mediaqueue.utils.files import default_title, file_kind, format_file_size, new_item_id, slugify


@pytest.mark.parametrize(
    "num_bytes,expected",
    [
        (0, "0 B"),
        (512, "512 B"),
        (1536, "1.5 KB"),
        (10 * 1024 * 1024, "10 MB"),
        (3 * 1024 ** 4, "3072 GB"),
    ],
)
def test_format_file_size(num_bytes, expected):
    assert format_file_size(num_bytes) == expected


def test_default_title_strips_only_last_extension():
    assert default_title("holiday.photo.jpeg") == "holiday.photo"
    assert default_title("README") == "README"


@pytest.mark.parametrize(
    "ctype,kind",
    [
        ("image/png", "image"),
        ("video/webm", "video"),
        ("audio/mpeg", "audio"),
        ("application/pdf", "document"),
        ("application/zip", "archive"),
        ("application/octet-stream", "file"),
    ],
)
def test_file_kind(ctype, kind):
    assert file_kind(ctype) == kind


def test_slugify():
    assert slugify("Press Kit 2025!") == "press-kit-2025"
    assert slugify("***") == "na"


def test_new_item_id_shape():
    assert re.fullmatch(r"\d{13}-[0-9a-z]{9}", new_item_id())
