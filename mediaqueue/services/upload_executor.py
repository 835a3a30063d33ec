# mediaqueue/services/upload_executor.py
from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Callable, Dict, List, Optional, Sequence, Set

import structlog

from mediaqueue.core.errors import (
    CANCELLED_TRANSFER_MESSAGE,
    CODE_TRANSFER_FAILED,
    DEFAULT_TRANSFER_MESSAGE,
    ItemNotFoundError,
    UploadQueueError,
)
from mediaqueue.domain.uploads import MediaItem, UploadItem, UploadOptions, UploadStatus
from mediaqueue.observability.metrics import upload_counter, upload_latency_hist, upload_size_hist
from mediaqueue.services.queue_store import QueueStore
from mediaqueue.services.upload_service import UploadService

log = structlog.get_logger(__name__)

OptionsFactory = Callable[[UploadItem], UploadOptions]


def _default_options(item: UploadItem) -> UploadOptions:
    return UploadOptions(metadata=dict(item.metadata))


def failure_message(exc: BaseException) -> str:
    message = getattr(exc, "message", None) or str(exc)
    return message.strip() or DEFAULT_TRANSFER_MESSAGE


class UploadExecutor:
    """
    Drains `pending` items through the upload service.

    At most `max_concurrency` items are `uploading` at any time (default 1,
    strictly sequential). Runs are serialised: a second run_all or a retry
    waits until the current run has finished.
    """

    def __init__(
        self,
        service: UploadService,
        *,
        max_concurrency: int = 1,
        options_factory: Optional[OptionsFactory] = None,
    ):
        self.service = service
        self.max_concurrency = max(1, int(max_concurrency))
        self.options_factory = options_factory or _default_options
        self._run_lock = asyncio.Lock()
        self._inflight: Dict[str, "asyncio.Future[MediaItem]"] = {}
        self._aborted: Set[str] = set()

    @property
    def active(self) -> bool:
        return self._run_lock.locked()

    @property
    def inflight_ids(self) -> List[str]:
        return list(self._inflight)

    async def run_all(self, store: QueueStore) -> List[MediaItem]:
        # snapshot op aanroepmoment; later toegevoegde items vallen buiten deze run
        snapshot = [item.id for item in store.by_status(UploadStatus.PENDING)]
        return await self.run_items(store, snapshot)

    async def run_items(self, store: QueueStore, item_ids: Sequence[str]) -> List[MediaItem]:
        """Upload the given ids in order; returns the results that completed, in order."""
        results: Dict[str, MediaItem] = {}
        async with self._run_lock:
            todo = deque(item_ids)
            log.info("run_start", items=len(todo), max_concurrency=self.max_concurrency)

            async def worker() -> None:
                while todo:
                    await self._process(store, todo.popleft(), results)

            workers = min(self.max_concurrency, len(todo))
            if workers:
                await asyncio.gather(*(worker() for _ in range(workers)))

            log.info("run_end", items=len(item_ids), completed=len(results))
        return [results[i] for i in item_ids if i in results]

    def abort(self, item_id: str) -> bool:
        """Cancel the in-flight transfer of an item that left the queue."""
        task = self._inflight.get(item_id)
        if task is None or task.done():
            return False
        self._aborted.add(item_id)
        task.cancel()
        log.info("upload_abort", item_id=item_id)
        return True

    # ---------- per item ----------

    async def _process(self, store: QueueStore, item_id: str, results: Dict[str, MediaItem]) -> None:
        item = store.find(item_id)
        if item is None or item.status != UploadStatus.PENDING:
            log.debug("upload_skip", item_id=item_id, status=item.status.value if item else None)
            return

        store.update(item_id, status=UploadStatus.UPLOADING, progress=0, error=None, error_code=None)
        options = self.options_factory(item)
        log.info("upload_start", item_id=item_id, name=item.source.name, size=item.source.size)

        def on_progress(percent: int) -> None:
            current = store.find(item_id)
            if current is None or current.status != UploadStatus.UPLOADING:
                return
            value = max(0, min(100, int(percent)))
            # monotoon: nooit terug tijdens uploading
            if value > current.progress:
                store.update(item_id, progress=value)

        started = time.perf_counter()
        task = asyncio.ensure_future(self.service.upload(item.source, options, on_progress))
        self._inflight[item_id] = task
        try:
            result = await task
        except asyncio.CancelledError:
            if item_id not in self._aborted:
                # run zelf geannuleerd (timeout, shutdown): item blijft retrybaar
                upload_counter.labels(result="error").inc()
                log.warning("upload_cancelled", item_id=item_id)
                self._settle(
                    store,
                    item_id,
                    status=UploadStatus.ERROR,
                    error=CANCELLED_TRANSFER_MESSAGE,
                    error_code=CODE_TRANSFER_FAILED,
                )
                raise
            self._aborted.discard(item_id)
            upload_counter.labels(result="aborted").inc()
            log.info("upload_aborted", item_id=item_id)
            return
        except Exception as e:
            message = failure_message(e)
            code = e.code if isinstance(e, UploadQueueError) else CODE_TRANSFER_FAILED
            upload_counter.labels(result="error").inc()
            log.warning("upload_failed", item_id=item_id, error=message, exc_type=type(e).__name__)
            self._settle(store, item_id, status=UploadStatus.ERROR, error=message, error_code=code)
            return
        finally:
            self._inflight.pop(item_id, None)

        upload_counter.labels(result="success").inc()
        upload_size_hist.observe(item.source.size)
        upload_latency_hist.observe(time.perf_counter() - started)
        log.info("upload_completed", item_id=item_id, media_id=result.id)
        if self._settle(store, item_id, status=UploadStatus.COMPLETED, progress=100, result=result):
            results[item_id] = result

    @staticmethod
    def _settle(store: QueueStore, item_id: str, **changes) -> bool:
        try:
            store.update(item_id, **changes)
        except ItemNotFoundError:
            # item is tijdens de transfer uit de queue gehaald
            log.info("upload_result_dropped", item_id=item_id, status=changes["status"].value)
            return False
        return True
