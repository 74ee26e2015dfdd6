# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Common types for the EPP data layer."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class GroupVersionKind:
    """Identifier of an external resource kind.

    Attributes:
        group: API group ("" for the core group).
        version: API version within the group.
        kind: Resource kind, e.g. "Pod".
    """

    group: str
    version: str
    kind: str

    @property
    def api_version(self) -> str:
        """Render the apiVersion field ("v1" or "group/version")."""
        if not self.group:
            return self.version
        return f"{self.group}/{self.version}"

    @classmethod
    def from_api_version(cls, api_version: str, kind: str) -> GroupVersionKind:
        """Build a GVK from an object's apiVersion and kind fields."""
        group, sep, version = api_version.rpartition("/")
        if not sep:
            group = ""
        return cls(group=group, version=version, kind=kind)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GroupVersionKind:
        """Deserialize from ``{"group", "version", "kind"}``."""
        return cls(
            group=data.get("group", ""),
            version=data["version"],
            kind=data["kind"],
        )

    def to_dict(self) -> dict[str, str]:
        return {"group": self.group, "version": self.version, "kind": self.kind}

    def __str__(self) -> str:
        return f"{self.api_version}, Kind={self.kind}"


POD_GVK = GroupVersionKind(group="", version="v1", kind="Pod")


class Unstructured:
    """Opaque structured document observed from the resource store.

    Wraps the nested dict form of an object. Accessors only cover the
    identity fields the data layer routes on; everything else is read with
    :meth:`get`.
    """

    __slots__ = ("object",)

    def __init__(self, obj: dict[str, Any] | None = None):
        self.object: dict[str, Any] = obj if obj is not None else {}

    @property
    def api_version(self) -> str:
        return self.object.get("apiVersion", "")

    @property
    def kind(self) -> str:
        return self.object.get("kind", "")

    @property
    def gvk(self) -> GroupVersionKind:
        return GroupVersionKind.from_api_version(self.api_version, self.kind)

    @property
    def metadata(self) -> dict[str, Any]:
        return self.object.get("metadata") or {}

    @property
    def name(self) -> str:
        return self.metadata.get("name", "")

    @property
    def namespace(self) -> str:
        return self.metadata.get("namespace", "")

    @property
    def key(self) -> str:
        """Cache key, "namespace/name" or just "name" for cluster scope."""
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name

    @property
    def labels(self) -> dict[str, str]:
        return dict(self.metadata.get("labels") or {})

    @property
    def annotations(self) -> dict[str, str]:
        return dict(self.metadata.get("annotations") or {})

    def get(self, *path: str, default: Any = None) -> Any:
        """Read a nested field, returning ``default`` if any step is missing."""
        current: Any = self.object
        for step in path:
            if not isinstance(current, dict) or step not in current:
                return default
            current = current[step]
        return current

    def is_empty(self) -> bool:
        return not self.object

    def deep_copy(self) -> Unstructured:
        """Return a fully independent copy."""
        return Unstructured(copy.deepcopy(self.object))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Unstructured):
            return NotImplemented
        return self.object == other.object

    def __repr__(self) -> str:
        return f"Unstructured(kind={self.kind!r}, key={self.key!r})"


# Input type descriptor declared by notification extractors
UNSTRUCTURED_TYPE = Unstructured


@dataclass(frozen=True)
class DeletedFinalStateUnknown:
    """Tombstone emitted when a delete was missed and only the last state is known."""

    key: str
    obj: Unstructured


class EventType(Enum):
    """Kind of object mutation that triggered a notification."""

    ADD_OR_UPDATE = "add_or_update"  # object created or updated
    DELETE = "delete"  # object deleted


@dataclass(frozen=True)
class NotificationEvent:
    """Event delivered to notification extractors.

    Attributes:
        type: Mutation kind.
        object: Current state (add/update) or last known state (delete).
            Deep-copied by the framework core before delivery.
    """

    type: EventType
    object: Unstructured


@dataclass
class Endpoint:
    """A model-server pod as the scheduler sees it.

    Attributes:
        name: Pod name.
        namespace: Pod namespace.
        address: Pod IP.
        port: Model server port.
        labels: Pod labels.
        ready: Whether the pod reports the Ready condition.
        models: Base models served, as reported by the server.
        active_adapters: LoRA adapters the server reports as loaded.
        declared_adapters: LoRA adapters the pod object declares.
        attributes: Free-form values written by extractors.
    """

    name: str
    namespace: str = ""
    address: str = ""
    port: int = 8000
    labels: dict[str, str] = field(default_factory=dict)
    ready: bool = False
    models: set[str] = field(default_factory=set)
    active_adapters: set[str] = field(default_factory=set)
    declared_adapters: set[str] = field(default_factory=set)
    attributes: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name

    @property
    def base_url(self) -> str:
        return f"http://{self.address}:{self.port}"

    def copy(self) -> Endpoint:
        return copy.deepcopy(self)
