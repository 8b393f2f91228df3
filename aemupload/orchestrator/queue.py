from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, Iterable, List, Optional, Set, Tuple
import asyncio
import logging
import uuid
from aemupload.utils.events import EventEmitter
logger = logging.getLogger(__name__)

Worker = Callable[[Any], Awaitable[Any]]


class BatchManager:
    """Fires a callback once all members of a batch have reported in."""

    def __init__(self):
        self._batches: Dict[str, List[Any]] = {}

    def create_batch(self, total: int, callback: Callable[[], Any]) -> str:
        if total < 1:
            raise ValueError(f"batch size must be at least 1, got {total}")
        batch_id = uuid.uuid4().hex
        self._batches[batch_id] = [total, callback]
        return batch_id

    def has_batch(self, batch_id: str) -> bool:
        return batch_id in self._batches

    async def update_batch(self, batch_id: str) -> None:
        batch = self._batches.get(batch_id)
        if batch is None:
            logger.debug(f"Ignoring update for unknown batch {batch_id}")
            return

        batch[0] -= 1
        if batch[0] > 0:
            return

        del self._batches[batch_id]
        result = batch[1]()
        if asyncio.iscoroutine(result):
            await result


class ConcurrentQueue(EventEmitter):
    """
    Bounded-parallelism task runner.

    Runs at most ``max_concurrent`` workers at once. Emits ``error`` with
    ``{"item": ..., "error": ...}`` when a worker raises, and ``emptied``
    every time nothing is left running or pending. Pushing after ``emptied``
    starts the queue again.
    """

    def __init__(self, max_concurrent: int = 5):
        super().__init__()
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._max_concurrent = max_concurrent
        self._pending: Deque[Tuple[Any, Worker, Optional[str], Optional[asyncio.Future]]] = deque()
        self._tasks: Set[asyncio.Task] = set()
        self._active = 0
        self._batches = BatchManager()

    def is_empty(self) -> bool:
        return self._active == 0 and not self._pending

    def push(self, item: Any, worker: Worker) -> asyncio.Future:
        """Queue one item; the returned future resolves once its worker settles."""
        future = asyncio.get_running_loop().create_future()
        self._pending.append((item, worker, None, future))
        self._fill()
        return future

    def push_all(self, items: Iterable[Any], worker: Worker) -> asyncio.Future:
        """Queue many items; the returned future resolves once all of them settle."""
        future = asyncio.get_running_loop().create_future()
        items = list(items)
        if not items:
            future.set_result(None)
            return future

        def _done():
            if not future.done():
                future.set_result(None)

        batch_id = self._batches.create_batch(len(items), _done)
        for item in items:
            self._pending.append((item, worker, batch_id, None))
        self._fill()
        return future

    def _fill(self) -> None:
        while self._pending and self._active < self._max_concurrent:
            item, worker, batch_id, future = self._pending.popleft()
            self._active += 1
            task = asyncio.create_task(self._run(item, worker, batch_id, future))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(
        self,
        item: Any,
        worker: Worker,
        batch_id: Optional[str],
        future: Optional[asyncio.Future],
    ) -> None:
        try:
            result = await worker(item)
            if future is not None and not future.done():
                future.set_result(result)
        except asyncio.CancelledError:
            if future is not None and not future.done():
                future.cancel()
            raise
        except Exception as e:
            logger.error(f"Error processing queued item {item!r}: {e}", exc_info=True)
            if future is not None and not future.done():
                future.set_result(None)
            await self.emit("error", {"item": item, "error": e})
        finally:
            self._active -= 1
            if batch_id is not None:
                await self._batches.update_batch(batch_id)
            self._fill()
            if self.is_empty():
                await self.emit("emptied")
