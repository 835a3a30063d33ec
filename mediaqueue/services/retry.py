# mediaqueue/services/retry.py
from __future__ import annotations

import logging
from typing import Callable, Optional

from mediaqueue.core.errors import InvalidStateError
from mediaqueue.domain.uploads import MediaItem, UploadStatus, ValidationPolicy
from mediaqueue.observability.metrics import retry_counter
from mediaqueue.services.queue_store import QueueStore
from mediaqueue.services.upload_executor import UploadExecutor
from mediaqueue.services.validation_uploads import validate

logger = logging.getLogger(__name__)


class RetryController:
    """Explicit retry of one failed item. Never triggered automatically."""

    def __init__(self, executor: UploadExecutor, policy: Callable[[], ValidationPolicy]):
        self.executor = executor
        self._policy = policy

    async def retry(self, store: QueueStore, item_id: str) -> Optional[MediaItem]:
        item = store.get(item_id)
        if item.status != UploadStatus.ERROR:
            raise InvalidStateError(
                f"Only failed items can be retried ({item_id} is {item.status.value})",
                {"item_id": item_id, "status": item.status.value},
            )

        store.update(item_id, status=UploadStatus.PENDING, error=None, error_code=None, progress=0)

        # opnieuw valideren tegen de huidige policy
        outcome = validate(item.source, self._policy())
        if not outcome.ok:
            store.update(item_id, status=UploadStatus.ERROR, error=outcome.reason, error_code=outcome.code)
            retry_counter.labels(result="rejected").inc()
            logger.info("Retry of %s rejected by validation: %s", item_id, outcome.reason)
            return None

        results = await self.executor.run_items(store, [item_id])
        if results:
            result = results[0]
        else:
            # een eerder ingeplande run kan het item al opgepakt hebben
            final = store.find(item_id)
            done = final is not None and final.status == UploadStatus.COMPLETED
            result = final.result if done else None
        retry_counter.labels(result="uploaded" if result is not None else "failed").inc()
        return result
