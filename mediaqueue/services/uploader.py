# mediaqueue/services/uploader.py
from __future__ import annotations

import inspect
import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Union

from mediaqueue.core.errors import InvalidStateError
from mediaqueue.core.settings import UploadSettings, get_settings
from mediaqueue.domain.uploads import (
    MediaItem,
    QueueStats,
    SourceFile,
    UploadItem,
    UploadOptions,
    UploadStatus,
    ValidationPolicy,
)
from mediaqueue.observability.metrics import admission_counter
from mediaqueue.services.previews import PreviewManager
from mediaqueue.services.queue_store import QueueStore
from mediaqueue.services.retry import RetryController
from mediaqueue.services.upload_executor import UploadExecutor
from mediaqueue.services.upload_service import UploadService
from mediaqueue.services.validation_uploads import validate
from mediaqueue.utils.files import default_title, new_item_id

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[List[MediaItem]], Union[None, Awaitable[None]]]


class MediaUploader:
    """
    Wires validator, queue store, previews, executor and retry together and
    exposes the queue operations to the console.
    """

    def __init__(
        self,
        service: UploadService,
        *,
        settings: Optional[UploadSettings] = None,
        policy: Optional[ValidationPolicy] = None,
        previews: Optional[PreviewManager] = None,
        defaults: Optional[UploadOptions] = None,
        max_files: Optional[int] = None,
        max_concurrency: Optional[int] = None,
        on_upload_complete: Optional[CompletionCallback] = None,
    ):
        self.settings = settings or get_settings()
        self.policy = policy or ValidationPolicy.from_settings(self.settings)
        self.previews = previews or PreviewManager(self.settings.preview_dir, self.settings.preview_max_px)
        self.defaults = defaults or UploadOptions(destination_folder=self.settings.destination_folder)
        self.max_files = max_files if max_files is not None else self.settings.max_files
        self.on_upload_complete = on_upload_complete

        self.store = QueueStore(self.previews)
        self.executor = UploadExecutor(
            service,
            max_concurrency=max_concurrency or self.settings.max_concurrent_uploads,
            options_factory=self._options_for,
        )
        self.retries = RetryController(self.executor, lambda: self.policy)
        # verwijderd tijdens upload -> transfer afbreken
        self.store.on_remove(lambda item: self.executor.abort(item.id))

    # ---------- read ----------

    @property
    def is_uploading(self) -> bool:
        return self.executor.active

    def items(self) -> List[UploadItem]:
        return self.store.items()

    def get(self, item_id: str) -> UploadItem:
        return self.store.get(item_id)

    def stats(self) -> QueueStats:
        return self.store.stats()

    # ---------- admission ----------

    def add_file(self, file: SourceFile, metadata: Optional[Dict[str, Any]] = None) -> Optional[UploadItem]:
        added = self.add_files([file], metadata)
        return added[0] if added else None

    def add_files(
        self, files: Iterable[SourceFile], metadata: Optional[Dict[str, Any]] = None
    ) -> List[UploadItem]:
        added: List[UploadItem] = []
        for file in files:
            if len(self.store) >= self.max_files:
                admission_counter.labels(result="skipped").inc()
                logger.warning("Queue full (%d files), skipping %s", self.max_files, file.name)
                continue

            outcome = validate(file, self.policy)
            item = UploadItem(
                id=self._unique_id(),
                source=file,
                metadata={"title": default_title(file.name), **(metadata or {})},
                preview=self.previews.acquire(file),
            )
            if not outcome.ok:
                # zichtbaar in de queue, zonder netwerkpoging
                item.status = UploadStatus.ERROR
                item.error = outcome.reason
                item.error_code = outcome.code
                admission_counter.labels(result="rejected").inc()
                logger.info("Rejected %s: %s", file.name, outcome.reason)
            else:
                admission_counter.labels(result="accepted").inc()

            added.append(self.store.add(item))
        return added

    def _unique_id(self) -> str:
        item_id = new_item_id()
        while item_id in self.store:
            item_id = new_item_id()
        return item_id

    # ---------- mutation ----------

    def update_metadata(self, item_id: str, values: Mapping[str, Any]) -> UploadItem:
        item = self.store.get(item_id)
        if item.status != UploadStatus.PENDING:
            raise InvalidStateError(
                f"Metadata can only change while pending ({item_id} is {item.status.value})",
                {"item_id": item_id},
            )
        return self.store.update(item_id, metadata={**item.metadata, **values})

    def remove(self, item_id: str) -> UploadItem:
        return self.store.remove(item_id)

    def clear_completed(self) -> int:
        return len(self.store.clear_completed())

    def clear_all(self) -> int:
        return len(self.store.clear_all())

    def set_policy(self, policy: ValidationPolicy) -> None:
        """New policy applies to later admissions and retries, not to queued items."""
        self.policy = policy

    def close(self) -> None:
        self.store.clear_all()
        self.previews.release_all()

    # ---------- uploads ----------

    async def upload_all(self) -> List[MediaItem]:
        results = await self.executor.run_all(self.store)
        await self._notify(results)
        return results

    async def retry(self, item_id: str) -> Optional[MediaItem]:
        result = await self.retries.retry(self.store, item_id)
        if result is not None:
            await self._notify([result])
        return result

    def _options_for(self, item: UploadItem) -> UploadOptions:
        return replace(self.defaults, metadata={**self.defaults.metadata, **item.metadata})

    async def _notify(self, results: List[MediaItem]) -> None:
        if self.on_upload_complete is None:
            return
        try:
            outcome = self.on_upload_complete(list(results))
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception("on_upload_complete callback failed")
