# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Capabilities of data layer plugins.

Capabilities are structural: a plugin has a capability when it exposes the
methods below, whatever its class. Owners narrow capabilities with
``isinstance`` at registration time and reject anything that falls short.

    Extractor                 typed_name()
     ├── PollExtractor        + extract(data, endpoint)
     └── NotificationExtractor + extract_notification(event)

    DataSource                typed_name(), extractors(), add_extractor(), collect()
     └── NotificationSource   + gvk(), notify(event)
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from ..plugin import TypedName
from .types import Endpoint, GroupVersionKind, NotificationEvent


@runtime_checkable
class Extractor(Protocol):
    """Plugin deriving application state from raw observations."""

    def typed_name(self) -> TypedName: ...


@runtime_checkable
class PollExtractor(Extractor, Protocol):
    """Extractor fed by a poll-based source."""

    async def extract(self, data: Any, endpoint: Endpoint) -> None:
        """Process data collected from ``endpoint``; raise on failure."""
        ...


@runtime_checkable
class NotificationExtractor(Extractor, Protocol):
    """Extractor fed by a notification source.

    ``extract_notification`` is awaited once per event, in event order, and
    must converge when the same object is observed more than once.
    """

    async def extract_notification(self, event: NotificationEvent) -> None:
        """Process one event; raise on failure."""
        ...


@runtime_checkable
class DataSource(Protocol):
    """Anything that supplies raw observations to extractors."""

    def typed_name(self) -> TypedName: ...

    def extractors(self) -> list[str]:
        """Rendered typed names of the registered extractors."""
        ...

    def add_extractor(self, extractor: Extractor | None) -> None:
        """Register an extractor; raise on invalid or duplicate input."""
        ...

    async def collect(self, endpoint: Endpoint) -> None:
        """Poll entry point. A no-op for push-only sources."""
        ...


@runtime_checkable
class NotificationSource(DataSource, Protocol):
    """Event-driven source bound to exactly one resource kind."""

    def gvk(self) -> GroupVersionKind: ...

    async def notify(self, event: NotificationEvent) -> None:
        """Deliver an already deep-copied event to every extractor."""
        ...
