# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Data source registry and watch-event routing.

The registry is the framework core between the watch substrate and the
data sources:
1. Sources are registered once during wiring; names are unique and each
   resource kind has at most one notification source
2. Watch callbacks (add/update/delete) are deep-copied, classified as
   AddOrUpdate or Delete and routed to the source bound to the object's kind
3. Poll sources are driven per endpoint through :meth:`collect_all`
"""

from __future__ import annotations

import logging
import threading

from ..errors import CapabilityMismatchError, DuplicateSourceError
from .interfaces import DataSource, NotificationSource
from .types import (
    DeletedFinalStateUnknown,
    Endpoint,
    EventType,
    GroupVersionKind,
    NotificationEvent,
    Unstructured,
)

logger = logging.getLogger(__name__)


class DataSourceRegistry:
    """Owns the data sources and routes watch events to them."""

    def __init__(self):
        self._sources: dict[str, DataSource] = {}
        self._by_gvk: dict[GroupVersionKind, NotificationSource] = {}
        self._lock = threading.Lock()

    def register(self, source: DataSource) -> None:
        """Register a data source.

        Raises:
            CapabilityMismatchError: source is not a DataSource
            DuplicateSourceError: the name, or for notification sources the
                watched kind, is already taken
        """
        if source is None or not isinstance(source, DataSource):
            raise CapabilityMismatchError(
                f"{type(source).__name__} does not implement DataSource"
            )
        name = source.typed_name().name
        with self._lock:
            if name in self._sources:
                raise DuplicateSourceError(f"duplicate data source {source.typed_name()}")
            if isinstance(source, NotificationSource):
                gvk = source.gvk()
                existing = self._by_gvk.get(gvk)
                if existing is not None:
                    raise DuplicateSourceError(
                        f"notification source for {gvk} already registered: "
                        f"{existing.typed_name()} (rejected {source.typed_name()})"
                    )
                self._by_gvk[gvk] = source
            self._sources[name] = source
        logger.info("Registered data source %s", source.typed_name())

    def get(self, name: str) -> DataSource | None:
        with self._lock:
            return self._sources.get(name)

    def notification_source(self, gvk: GroupVersionKind) -> NotificationSource | None:
        with self._lock:
            return self._by_gvk.get(gvk)

    def sources(self) -> list[DataSource]:
        with self._lock:
            return list(self._sources.values())

    def notification_sources(self) -> list[NotificationSource]:
        with self._lock:
            return list(self._by_gvk.values())

    def poll_sources(self) -> list[DataSource]:
        return [s for s in self.sources() if not isinstance(s, NotificationSource)]

    def watched_kinds(self) -> list[GroupVersionKind]:
        with self._lock:
            return list(self._by_gvk)

    # Watch handlers

    async def on_add(self, obj: Unstructured) -> None:
        await self._route(EventType.ADD_OR_UPDATE, obj)

    async def on_update(self, old: Unstructured | None, new: Unstructured) -> None:
        await self._route(EventType.ADD_OR_UPDATE, new)

    async def on_delete(self, obj: Unstructured | DeletedFinalStateUnknown) -> None:
        if isinstance(obj, DeletedFinalStateUnknown):
            obj = obj.obj
        await self._route(EventType.DELETE, obj)

    async def _route(self, event_type: EventType, obj: Unstructured) -> None:
        if not isinstance(obj, Unstructured):
            raise TypeError(f"expected Unstructured, got {type(obj).__name__}")

        gvk = obj.gvk
        source = self.notification_source(gvk)
        if source is None:
            logger.debug("No notification source for %s, dropping %s", gvk, obj.key)
            return

        event = NotificationEvent(type=event_type, object=obj.deep_copy())
        await source.notify(event)

    async def collect_all(self, endpoint: Endpoint) -> int:
        """Run every poll source against ``endpoint``.

        Returns:
            Number of sources that failed
        """
        failed = 0
        for source in self.poll_sources():
            try:
                await source.collect(endpoint)
            except Exception as e:
                failed += 1
                logger.warning(
                    "Collection by %s from %s failed: %s", source.typed_name(), endpoint.key, e
                )
        return failed

    async def close(self) -> None:
        """Release resources held by sources (e.g. HTTP sessions)."""
        for source in self.sources():
            close = getattr(source, "close", None)
            if close is not None:
                await close()
