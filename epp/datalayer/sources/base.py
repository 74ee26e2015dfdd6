# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Extractor bookkeeping shared by data sources."""

from __future__ import annotations

import threading
from typing import Generic, TypeVar

from ...errors import CapabilityMismatchError, DuplicateExtractorError, InvalidExtractorError
from ...plugin import TypedName

E = TypeVar("E")


class ExtractorSet(Generic[E]):
    """Extractors of one source, keyed by instance name.

    Insertion is insert-if-absent under a lock; iteration works on a
    snapshot, so registering while a dispatch is in flight is safe.
    The snapshot keeps registration order.
    """

    def __init__(self, owner: TypedName, capability: type[E]):
        self.owner = owner
        self.capability = capability
        self._extractors: dict[str, E] = {}
        self._lock = threading.Lock()

    def add(self, extractor: object) -> E:
        """Register ``extractor`` if it has the required capability.

        Raises:
            InvalidExtractorError: extractor is None
            CapabilityMismatchError: extractor lacks the capability
            DuplicateExtractorError: the name is already registered
        """
        if extractor is None:
            raise InvalidExtractorError("cannot add nil extractor")
        if not isinstance(extractor, self.capability):
            raise CapabilityMismatchError(
                f"extractor {_describe(extractor)} does not implement "
                f"{self.capability.__name__} required by source {self.owner}"
            )
        typed_name = extractor.typed_name()
        with self._lock:
            if typed_name.name in self._extractors:
                raise DuplicateExtractorError(
                    f"duplicate extractor {typed_name} on source {self.owner}"
                )
            self._extractors[typed_name.name] = extractor
        return extractor

    def snapshot(self) -> list[E]:
        with self._lock:
            return list(self._extractors.values())

    def names(self) -> list[str]:
        return [str(ext.typed_name()) for ext in self.snapshot()]

    def get(self, name: str) -> E | None:
        with self._lock:
            return self._extractors.get(name)

    def __len__(self) -> int:
        with self._lock:
            return len(self._extractors)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._extractors


def _describe(plugin: object) -> str:
    typed_name = getattr(plugin, "typed_name", None)
    if callable(typed_name):
        return str(typed_name())
    return type(plugin).__name__
