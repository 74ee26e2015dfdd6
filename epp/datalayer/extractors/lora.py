# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""LoRA adapter tracking from pod objects."""

from __future__ import annotations

import logging
import threading
from typing import Any

from ...plugin import PluginRegistry, TypedName
from ..store import EndpointStore
from ..types import UNSTRUCTURED_TYPE, EventType, NotificationEvent, Unstructured

logger = logging.getLogger(__name__)

LORA_EXTRACTOR_TYPE = "lora-adapters-extractor"
DEFAULT_ADAPTERS_ANNOTATION = "inference.networking.x-k8s.io/lora-adapters"


@PluginRegistry.register(LORA_EXTRACTOR_TYPE)
class LoraAdapterExtractor:
    """Tracks which LoRA adapters each pod serves.

    Adapters are read from ``adapters_field`` (a list), falling back to a
    comma-separated annotation. Every add/update replaces the pod's entry
    wholesale, so repeated or superseded observations converge to the
    latest state. A delete drops the entry.

    When a store is given, the adapter set is mirrored onto
    ``declared_adapters`` of the endpoint with the same key.
    ``active_adapters`` belongs to the server-side models extractor.
    """

    def __init__(
        self,
        name: str,
        store: EndpointStore | None = None,
        adapters_field: str = "adapters",
        annotation: str = DEFAULT_ADAPTERS_ANNOTATION,
    ):
        self._typed_name = TypedName(type=LORA_EXTRACTOR_TYPE, name=name)
        self.store = store
        self.adapters_path = tuple(p for p in adapters_field.split(".") if p)
        self.annotation = annotation
        self._adapters: dict[str, frozenset[str]] = {}
        self._lock = threading.Lock()

    def typed_name(self) -> TypedName:
        return self._typed_name

    def expected_input_type(self) -> type:
        return UNSTRUCTURED_TYPE

    def parse_adapters(self, obj: Unstructured) -> frozenset[str]:
        """Adapter names declared on ``obj``."""
        value: Any = obj.get(*self.adapters_path) if self.adapters_path else None
        if value is None:
            value = obj.annotations.get(self.annotation, "")
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, (list, tuple, set, frozenset)):
            raise TypeError(f"adapters of {obj.key} must be a list, got {type(value).__name__}")
        return frozenset(str(a).strip() for a in value if str(a).strip())

    async def extract_notification(self, event: NotificationEvent) -> None:
        obj = event.object
        if not obj.name:
            raise ValueError("object has no metadata.name")
        key = obj.key

        if event.type is EventType.DELETE:
            with self._lock:
                removed = self._adapters.pop(key, None)
            if removed is not None:
                logger.debug("Dropped adapters of %s", key)
            if self.store is not None and self.store.update(key, declared_adapters=set()) is None:
                self.store.discard_staged(key)
            return

        adapters = self.parse_adapters(obj)
        with self._lock:
            self._adapters[key] = adapters
        if self.store is not None:
            self._mirror(key, adapters)
        logger.debug("Adapters of %s: %s", key, sorted(adapters))

    def _mirror(self, key: str, adapters: frozenset[str]) -> None:
        if self.store.update(key, declared_adapters=set(adapters)) is not None:
            return
        # Held by the store until the pod extractor adds the endpoint.
        if adapters:
            self.store.update_or_stage(key, declared_adapters=set(adapters))
        else:
            self.store.discard_staged(key)

    def adapters(self, key: str) -> frozenset[str] | None:
        """Adapters tracked for ``key``, or None if the object is unknown."""
        with self._lock:
            return self._adapters.get(key)

    def snapshot(self) -> dict[str, frozenset[str]]:
        with self._lock:
            return dict(self._adapters)

    def pods_with_adapter(self, adapter: str) -> list[str]:
        with self._lock:
            return sorted(key for key, names in self._adapters.items() if adapter in names)
