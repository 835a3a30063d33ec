import pytest

from mediaqueue.core.settings import UploadSettings
from mediaqueue.domain.uploads import ValidationPolicy
from mediaqueue.services.previews import PreviewManager
from mediaqueue.services.uploader import MediaUploader

from tests.factories import MB, FakeUploadService


@pytest.fixture
def anyio_backend():
    # Dwing anyio om alleen asyncio te gebruiken (geen Trio nodig)
    return "asyncio"


@pytest.fixture
def settings():
    return UploadSettings(_env_file=None)


@pytest.fixture
def policy():
    return ValidationPolicy(
        max_file_size=10 * MB,
        allowed_types=frozenset({"image/*", "application/pdf", "video/mp4"}),
        allowed_extensions=frozenset({"jpg", "png", "pdf", "docx"}),
    )


@pytest.fixture
def previews(tmp_path):
    return PreviewManager(str(tmp_path / "previews"), max_px=32)


@pytest.fixture
def service():
    return FakeUploadService()


@pytest.fixture
def completed_batches():
    return []


@pytest.fixture
def uploader(service, settings, policy, previews, completed_batches):
    u = MediaUploader(
        service,
        settings=settings,
        policy=policy,
        previews=previews,
        on_upload_complete=completed_batches.append,
    )
    yield u
    u.close()
