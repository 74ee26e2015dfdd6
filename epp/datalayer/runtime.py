# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Wired data layer: registry, endpoint store and one event pump per kind."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .pump import EventPump
from .registry import DataSourceRegistry
from .store import EndpointStore
from .types import GroupVersionKind

logger = logging.getLogger(__name__)


@dataclass
class DataLayer:
    """Running data layer.

    Attributes:
        registry: Registered sources and event routing.
        store: Endpoint cache the scheduler reads.
        pumps: Event pump per watched kind.
    """

    registry: DataSourceRegistry
    store: EndpointStore
    pumps: dict[GroupVersionKind, EventPump] = field(default_factory=dict)

    def pump_for(self, gvk: GroupVersionKind) -> EventPump:
        pump = self.pumps.get(gvk)
        if pump is None:
            raise KeyError(f"no event pump for {gvk}")
        return pump

    async def start(self) -> None:
        """Start every pump. Call once wiring is complete."""
        for pump in self.pumps.values():
            await pump.start()
        logger.info("Data layer started with %d event pump(s)", len(self.pumps))

    async def stop(self) -> None:
        for pump in self.pumps.values():
            await pump.stop()
        await self.registry.close()
        logger.info("Data layer stopped")

    async def collect(self) -> int:
        """Run poll sources against every ready endpoint.

        Returns:
            Number of failed collections
        """
        failed = 0
        for endpoint in self.store.ready_endpoints():
            failed += await self.registry.collect_all(endpoint)
        return failed

    def to_dict(self) -> dict[str, Any]:
        """Diagnostic snapshot of sources and pumps."""
        sources = []
        for source in self.registry.sources():
            entry: dict[str, Any] = {
                "typed_name": str(source.typed_name()),
                "extractors": source.extractors(),
            }
            metrics = getattr(source, "metrics", None)
            if metrics is not None:
                entry["metrics"] = metrics().to_dict()
            sources.append(entry)
        return {
            "sources": sources,
            "pumps": {
                str(gvk): {
                    "running": pump.running,
                    "pending": pump.pending(),
                    "handled": pump.events_handled,
                    "failed": pump.events_failed,
                }
                for gvk, pump in self.pumps.items()
            },
            "endpoints": len(self.store),
        }
