# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Endpoint cache written by extractors and read by the scheduler."""

from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Any

from .types import Endpoint

logger = logging.getLogger(__name__)

_ENDPOINT_FIELDS = frozenset(f.name for f in dataclasses.fields(Endpoint))


class EndpointStore:
    """Thread-safe mapping of endpoint key ("namespace/name") to Endpoint.

    Readers always get copies; writers go through :meth:`upsert`,
    :meth:`update`, :meth:`update_or_stage` and :meth:`remove`.

    Fields staged for a key that is not in the store yet are held back
    and applied when the endpoint is first upserted. Readers never see
    staged fields.
    """

    def __init__(self):
        self._endpoints: dict[str, Endpoint] = {}
        self._staged: dict[str, dict[str, Any]] = {}
        self._lock = threading.RLock()

    def upsert(self, endpoint: Endpoint) -> Endpoint:
        """Insert or replace pod-level fields of an endpoint.

        Fields owned by other extractors (models, adapters, attributes) are
        kept when the endpoint already exists.
        """
        with self._lock:
            current = self._endpoints.get(endpoint.key)
            if current is None:
                current = endpoint.copy()
                for name, value in self._staged.pop(endpoint.key, {}).items():
                    setattr(current, name, value)
                self._endpoints[endpoint.key] = current
                logger.debug("Added endpoint %s", endpoint.key)
            else:
                current.address = endpoint.address
                current.port = endpoint.port
                current.labels = dict(endpoint.labels)
                current.ready = endpoint.ready
            return current.copy()

    def update(self, key: str, **fields: Any) -> Endpoint | None:
        """Set fields on an existing endpoint.

        Returns:
            The updated endpoint, or None if ``key`` is unknown
        """
        with self._lock:
            endpoint = self._endpoints.get(key)
            if endpoint is None:
                return None
            for name, value in fields.items():
                if not hasattr(endpoint, name):
                    raise AttributeError(f"Endpoint has no field {name!r}")
                setattr(endpoint, name, value)
            return endpoint.copy()

    def update_or_stage(self, key: str, **fields: Any) -> Endpoint | None:
        """Set fields on an endpoint, or stage them until ``key`` is upserted.

        Returns:
            The updated endpoint, or None if the fields were staged
        """
        unknown = set(fields) - _ENDPOINT_FIELDS
        if unknown:
            raise AttributeError(f"Endpoint has no field(s) {sorted(unknown)}")
        with self._lock:
            if key in self._endpoints:
                return self.update(key, **fields)
            self._staged.setdefault(key, {}).update(fields)
        logger.debug("Staged %s for endpoint %s", sorted(fields), key)
        return None

    def discard_staged(self, key: str) -> None:
        with self._lock:
            self._staged.pop(key, None)

    def staged(self, key: str) -> dict[str, Any]:
        """Fields held back for ``key`` (a copy)."""
        with self._lock:
            return dict(self._staged.get(key, {}))

    def remove(self, key: str) -> Endpoint | None:
        with self._lock:
            self._staged.pop(key, None)
            endpoint = self._endpoints.pop(key, None)
        if endpoint is not None:
            logger.debug("Removed endpoint %s", key)
        return endpoint

    def get(self, key: str) -> Endpoint | None:
        with self._lock:
            endpoint = self._endpoints.get(key)
            return endpoint.copy() if endpoint else None

    def list_endpoints(self) -> list[Endpoint]:
        with self._lock:
            return [ep.copy() for ep in self._endpoints.values()]

    def ready_endpoints(self) -> list[Endpoint]:
        """Endpoints that are ready and have an address."""
        return [ep for ep in self.list_endpoints() if ep.ready and ep.address]

    def endpoints_with_adapter(self, adapter: str) -> list[Endpoint]:
        """Endpoints whose server reports ``adapter`` as loaded."""
        return [ep for ep in self.list_endpoints() if adapter in ep.active_adapters]

    def endpoints_declaring(self, adapter: str) -> list[Endpoint]:
        """Endpoints whose pod object declares ``adapter``."""
        return [ep for ep in self.list_endpoints() if adapter in ep.declared_adapters]

    def clear(self) -> None:
        with self._lock:
            self._endpoints.clear()
            self._staged.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._endpoints)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._endpoints
