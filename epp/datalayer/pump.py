# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Per-kind event pump between a watch and the data source registry."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .registry import DataSourceRegistry
from .types import DeletedFinalStateUnknown, GroupVersionKind, Unstructured

logger = logging.getLogger(__name__)

_ADD = "add"
_UPDATE = "update"
_DELETE = "delete"


class EventPump:
    """Feeds the watch events of one kind to the registry, one at a time.

    Watch callbacks are queued in arrival order and handled by a single
    task, so the notification source of the kind sees them in that order.
    Enqueueing waits when the queue is full, which pushes back on the
    watch when extractors are slow.
    """

    def __init__(self, registry: DataSourceRegistry, gvk: GroupVersionKind, queue_size: int = 1024):
        self.registry = registry
        self.gvk = gvk
        self._queue: asyncio.Queue[tuple[str, tuple[Any, ...]]] = asyncio.Queue(maxsize=queue_size)
        self._task: asyncio.Task | None = None
        self.events_handled = 0
        self.events_failed = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"event-pump-{self.gvk.kind}")
        logger.info("Event pump for %s started", self.gvk)

    async def stop(self) -> None:
        """Stop the pump. Queued events that were not handled yet are dropped."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(
            "Event pump for %s stopped (handled=%d, failed=%d, dropped=%d)",
            self.gvk,
            self.events_handled,
            self.events_failed,
            self._queue.qsize(),
        )

    async def join(self) -> None:
        """Wait until every queued event has been handled."""
        await self._queue.join()

    def pending(self) -> int:
        return self._queue.qsize()

    async def put_add(self, obj: Unstructured) -> None:
        await self._put(_ADD, obj)

    async def put_update(self, old: Unstructured | None, new: Unstructured) -> None:
        await self._put(_UPDATE, old, new)

    async def put_delete(self, obj: Unstructured | DeletedFinalStateUnknown) -> None:
        await self._put(_DELETE, obj)

    async def resync(self, objects: list[Unstructured]) -> None:
        """Re-deliver the full current state, as a watch does on (re)list."""
        for obj in objects:
            await self.put_add(obj)
        logger.debug("Resync of %s queued %d object(s)", self.gvk, len(objects))

    async def _put(self, kind: str, *args: Any) -> None:
        await self._queue.put((kind, args))

    async def _run(self) -> None:
        while True:
            kind, args = await self._queue.get()
            try:
                if kind == _ADD:
                    await self.registry.on_add(*args)
                elif kind == _UPDATE:
                    await self.registry.on_update(*args)
                else:
                    await self.registry.on_delete(*args)
                self.events_handled += 1
            except Exception:
                self.events_failed += 1
                logger.exception("Event pump for %s failed handling %s event", self.gvk, kind)
            finally:
                self._queue.task_done()
