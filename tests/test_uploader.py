import asyncio

import pytest

from mediaqueue.core.errors import InvalidStateError, ItemNotFoundError, TransferError
from mediaqueue.domain.uploads import UploadOptions, UploadStatus, ValidationPolicy
from mediaqueue.services.uploader import MediaUploader

from tests.factories import MB, big_file, pdf_file, png_file

pytestmark = pytest.mark.anyio


def _assert_counts_add_up(uploader):
    s = uploader.stats()
    assert s.pending + s.uploading + s.completed + s.errors == s.total == len(uploader.items())


# -------------------------
# Scenario A: te groot bestand
# -------------------------
async def test_oversized_file_lands_in_error_without_network(uploader, service):
    item = uploader.add_file(big_file(size=50 * MB))

    assert item.status == UploadStatus.ERROR
    assert item.error_code == "too_large"
    assert "10 MB" in item.error

    assert await uploader.upload_all() == []
    assert service.calls == []
    _assert_counts_add_up(uploader)


# -------------------------
# Scenario B: twee geldige bestanden
# -------------------------
async def test_two_files_upload_in_order_and_callback_once(uploader, service, completed_batches):
    uploading_seen = []
    service.on_start = lambda f: uploading_seen.append(uploader.stats().uploading)
    first = uploader.add_file(png_file("first.png"))
    second = uploader.add_file(pdf_file("second.pdf"))

    results = await uploader.upload_all()

    assert service.calls == ["first.png", "second.pdf"]
    assert uploading_seen == [1, 1]
    assert uploader.get(first.id).status == UploadStatus.COMPLETED
    assert uploader.get(second.id).status == UploadStatus.COMPLETED
    assert completed_batches == [results]
    assert [r.name for r in results] == ["first.png", "second.pdf"]
    assert not uploader.is_uploading


async def test_callback_fires_even_for_empty_run(uploader, completed_batches):
    assert await uploader.upload_all() == []
    assert completed_batches == [[]]


# -------------------------
# Scenario C: fout + retry
# -------------------------
async def test_failed_upload_can_be_retried(uploader, service, completed_batches):
    service.failures["photo.png"] = TransferError("Gateway timeout")
    item = uploader.add_file(png_file())

    await uploader.upload_all()
    assert uploader.get(item.id).status == UploadStatus.ERROR
    assert uploader.get(item.id).error == "Gateway timeout"
    assert completed_batches == [[]]

    statuses = []
    service.on_start = lambda f: statuses.append(uploader.get(item.id).status)
    result = await uploader.retry(item.id)

    assert statuses == [UploadStatus.UPLOADING]
    assert uploader.get(item.id).status == UploadStatus.COMPLETED
    assert uploader.get(item.id).id == item.id
    assert completed_batches[-1] == [result]


# -------------------------
# Scenario D: verwijderen terwijl pending
# -------------------------
async def test_remove_pending_item_releases_preview(uploader, service, previews):
    item = uploader.add_file(png_file())
    before = len(uploader.items())
    assert previews.live_count == 1

    uploader.remove(item.id)

    assert len(uploader.items()) == before - 1
    assert previews.live_count == 0
    assert not item.preview.path.exists()
    await uploader.upload_all()
    assert service.calls == []


async def test_remove_while_uploading_aborts_and_never_reappears(uploader, service, previews):
    service.release = asyncio.Event()
    a = uploader.add_file(png_file("a.png"))
    b = uploader.add_file(pdf_file("b.pdf"))

    run = asyncio.ensure_future(uploader.upload_all())
    while a.id not in uploader.executor.inflight_ids:
        await asyncio.sleep(0)

    uploader.remove(a.id)
    service.release.set()
    results = await run

    assert [r.name for r in results] == ["b.pdf"]
    assert [i.id for i in uploader.items()] == [b.id]
    assert previews.released_count == previews.acquired_count == 1


# -------------------------
# Admission details
# -------------------------
async def test_default_title_and_caller_metadata(uploader):
    item = uploader.add_file(pdf_file("Annual Report 2024.pdf"), {"alt_text": "cover"})
    assert item.metadata == {"title": "Annual Report 2024", "alt_text": "cover"}


async def test_caller_metadata_overrides_default_title(uploader):
    item = uploader.add_file(pdf_file("x.pdf"), {"title": "Custom"})
    assert item.metadata["title"] == "Custom"


async def test_max_files_caps_the_queue(service, settings, policy, previews):
    uploader = MediaUploader(service, settings=settings, policy=policy, previews=previews, max_files=2)
    added = uploader.add_files([pdf_file(f"{i}.pdf") for i in range(4)])
    assert len(added) == 2
    assert len(uploader.items()) == 2
    uploader.close()


async def test_ids_are_unique(uploader):
    items = uploader.add_files([pdf_file(f"{i}.pdf") for i in range(10)])
    assert len({i.id for i in items}) == 10


async def test_rejected_image_still_gets_preview(uploader, previews, service):
    uploader.set_policy(ValidationPolicy(max_file_size=10 * MB, allowed_types=frozenset({"application/pdf"})))
    rejected = uploader.add_file(png_file("late.png"))

    assert rejected.status == UploadStatus.ERROR
    assert rejected.error_code == "invalid_type"
    assert rejected.preview is not None
    assert previews.live_count == 1

    await uploader.upload_all()
    assert service.calls == []


# -------------------------
# Metadata
# -------------------------
async def test_metadata_only_editable_while_pending(uploader):
    item = uploader.add_file(pdf_file("a.pdf"))
    uploader.update_metadata(item.id, {"alt_text": "Front page"})
    assert uploader.get(item.id).metadata == {"title": "a", "alt_text": "Front page"}

    await uploader.upload_all()
    with pytest.raises(InvalidStateError):
        uploader.update_metadata(item.id, {"title": "too late"})


async def test_metadata_is_sent_with_upload_options(service, settings, policy, previews):
    uploader = MediaUploader(
        service,
        settings=settings,
        policy=policy,
        previews=previews,
        defaults=UploadOptions(folder_id=7, destination_folder="images", metadata={"source": "console"}),
    )
    uploader.add_file(png_file("a.png"), {"alt_text": "A"})
    await uploader.upload_all()

    opts = service.options[0]
    assert opts.folder_id == 7
    assert opts.destination_folder == "images"
    assert opts.metadata == {"source": "console", "title": "a", "alt_text": "A"}
    uploader.close()


# -------------------------
# Opruimen / invarianten
# -------------------------
async def test_clear_completed_is_idempotent(uploader, previews):
    uploader.add_files([png_file("a.png"), pdf_file("b.pdf")])
    uploader.add_file(big_file())
    await uploader.upload_all()

    assert uploader.clear_completed() == 2
    assert uploader.clear_completed() == 0
    assert [i.status for i in uploader.items()] == [UploadStatus.ERROR]
    assert previews.live_count == 0


async def test_clear_all_and_close_release_everything(uploader, previews):
    uploader.add_files([png_file("a.png"), png_file("b.png"), pdf_file("c.pdf")])
    assert previews.live_count == 2
    assert uploader.clear_all() == 3
    assert previews.live_count == 0
    uploader.close()
    assert previews.released_count == 2


async def test_unknown_ids_are_signalled(uploader):
    with pytest.raises(ItemNotFoundError):
        uploader.remove("ghost")
    with pytest.raises(ItemNotFoundError):
        await uploader.retry("ghost")
    with pytest.raises(ItemNotFoundError):
        uploader.update_metadata("ghost", {"title": "x"})


async def test_async_callback_is_awaited(service, settings, policy, previews):
    seen = []

    async def on_complete(results):
        await asyncio.sleep(0)
        seen.append([r.name for r in results])

    uploader = MediaUploader(service, settings=settings, policy=policy, previews=previews,
                             on_upload_complete=on_complete)
    uploader.add_file(pdf_file("a.pdf"))
    await uploader.upload_all()
    assert seen == [["a.pdf"]]
    uploader.close()


async def test_broken_callback_does_not_break_run(service, settings, policy, previews):
    def on_complete(results):
        raise RuntimeError("listener down")

    uploader = MediaUploader(service, settings=settings, policy=policy, previews=previews,
                             on_upload_complete=on_complete)
    item = uploader.add_file(pdf_file("a.pdf"))
    results = await uploader.upload_all()
    assert len(results) == 1
    assert uploader.get(item.id).status == UploadStatus.COMPLETED
    uploader.close()


async def test_count_invariant_through_lifecycle(uploader, service):
    service.failures["b.pdf"] = TransferError("nope")
    uploader.add_files([pdf_file("a.pdf"), pdf_file("b.pdf"), big_file()])
    _assert_counts_add_up(uploader)
    await uploader.upload_all()
    _assert_counts_add_up(uploader)
    s = uploader.stats()
    assert (s.completed, s.errors, s.pending) == (1, 2, 0)


async def test_metadata_keys_are_not_call_arguments(uploader):
    item = uploader.add_file(pdf_file("a.pdf"))
    updated = uploader.update_metadata(item.id, {"item_id": "other", "self": "me"})
    assert updated.metadata == {"title": "a", "item_id": "other", "self": "me"}
