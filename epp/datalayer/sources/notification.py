# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Notification source: push-based dispatch for a single resource kind."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ...errors import ExtractionError
from ...plugin import PluginRegistry, TypedName
from ..interfaces import Extractor, NotificationExtractor
from ..metrics import DispatchMetrics
from ..types import Endpoint, GroupVersionKind, NotificationEvent
from .base import ExtractorSet

logger = logging.getLogger(__name__)

NOTIFICATION_SOURCE_TYPE = "k8s-notification-source"


@PluginRegistry.register(NOTIFICATION_SOURCE_TYPE)
class K8sNotificationSource:
    """Watches one GVK and dispatches its events to notification extractors.

    The framework core owns the watch and calls :meth:`notify` for every
    event, already deep-copied. Dispatch is sequential: each extractor is
    awaited in turn, so every extractor sees the events of this kind in
    arrival order. A failing extractor does not stop delivery to the others;
    failures are aggregated, counted and logged, never raised.

    :meth:`collect` is a no-op. All data flows through :meth:`notify`.
    """

    def __init__(
        self,
        name: str,
        gvk: GroupVersionKind,
        plugin_type: str = NOTIFICATION_SOURCE_TYPE,
    ):
        self._typed_name = TypedName(type=plugin_type, name=name)
        self._gvk = gvk
        self._extractors: ExtractorSet[NotificationExtractor] = ExtractorSet(
            self._typed_name, NotificationExtractor
        )
        self._metrics = DispatchMetrics()

    @classmethod
    def from_parameters(cls, name: str, parameters: dict[str, Any]) -> K8sNotificationSource:
        """Build from config parameters (``gvk`` as a mapping)."""
        params = dict(parameters)
        gvk = params.pop("gvk")
        if isinstance(gvk, dict):
            gvk = GroupVersionKind.from_dict(gvk)
        return cls(name, gvk, **params)

    def typed_name(self) -> TypedName:
        return self._typed_name

    def gvk(self) -> GroupVersionKind:
        """The kind this source watches, fixed at construction."""
        return self._gvk

    def extractors(self) -> list[str]:
        return self._extractors.names()

    def add_extractor(self, extractor: Extractor | None) -> None:
        """Register an extractor.

        Only NotificationExtractors are accepted; plain Extractors are
        rejected even though they satisfy the base capability.

        Raises:
            InvalidExtractorError: extractor is None
            CapabilityMismatchError: extractor is not a NotificationExtractor
            DuplicateExtractorError: an extractor with this name exists
        """
        self._extractors.add(extractor)
        logger.info(
            "Registered extractor %s on notification source %s (%s)",
            extractor.typed_name(),
            self._typed_name,
            self._gvk,
        )

    async def collect(self, endpoint: Endpoint) -> None:
        """No-op. Notification sources are event-driven, not poll-based."""
        return None

    def metrics(self) -> DispatchMetrics:
        return self._metrics

    async def notify(self, event: NotificationEvent) -> None:
        """Dispatch an event to all registered extractors.

        If the caller is cancelled mid fan-out, the remaining extractors still
        receive the event before the cancellation is re-raised. Repeated
        cancellation while waiting does not reach the fan-out.
        """
        dispatch = asyncio.ensure_future(self._dispatch(event))
        try:
            await asyncio.shield(dispatch)
        except asyncio.CancelledError:
            if not dispatch.done():
                logger.debug(
                    "Cancelled while dispatching %s on %s, finishing fan-out",
                    event.type.value,
                    self._typed_name,
                )
            while not dispatch.done():
                try:
                    await asyncio.shield(dispatch)
                except asyncio.CancelledError:
                    logger.debug("Cancelled again while dispatching on %s", self._typed_name)
            raise

    async def _dispatch(self, event: NotificationEvent) -> None:
        extractors = self._extractors.snapshot()
        failures: list[tuple[str, BaseException]] = []

        for index, extractor in enumerate(extractors):
            # Every extractor but the last gets a private copy so mutations
            # stay local to the extractor that made them.
            if index < len(extractors) - 1:
                delivered = NotificationEvent(type=event.type, object=event.object.deep_copy())
            else:
                delivered = event
            try:
                await extractor.extract_notification(delivered)
            # The fan-out runs shielded, so a CancelledError here was raised
            # by the extractor itself.
            except (Exception, asyncio.CancelledError) as e:
                failures.append((str(extractor.typed_name()), e))

        self._metrics.record(failures)
        logger.debug(
            "Dispatched %s %s to %d extractor(s) on %s",
            event.type.value,
            event.object.key,
            len(extractors),
            self._typed_name,
        )

        if failures:
            err = ExtractionError(failures)
            logger.error(
                "extractor(s) failed processing notification: source=%s gvk=%s "
                "eventType=%s object=%s: %s",
                self._typed_name,
                self._gvk,
                event.type.value,
                event.object.key,
                err,
            )

    def to_dict(self) -> dict[str, Any]:
        """Diagnostic snapshot."""
        return {
            "typed_name": str(self._typed_name),
            "gvk": self._gvk.to_dict(),
            "extractors": self.extractors(),
            "metrics": self._metrics.to_dict(),
        }

    def __repr__(self) -> str:
        return f"K8sNotificationSource({self._typed_name}, {self._gvk})"
