# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Plugin identity and factory registry.

Provides:
1. TypedName, the (type, name) identity every plugin instance carries
2. The Plugin capability shared by sources and extractors
3. A decorator-based registry mapping plugin types to factories
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Protocol, runtime_checkable

from .errors import UnknownPluginTypeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TypedName:
    """Identity of a plugin instance.

    Attributes:
        type: The implementing plugin family (e.g. "pod-extractor").
        name: The configured instance name.
    """

    type: str
    name: str

    def __str__(self) -> str:
        return f"{self.type}/{self.name}"


@runtime_checkable
class Plugin(Protocol):
    """Minimal capability shared by every pluggable unit."""

    def typed_name(self) -> TypedName: ...


PluginFactory = Callable[[str, dict[str, Any]], Plugin]


def _accepted(plugin_cls: type, injected: dict[str, Any]) -> dict[str, Any]:
    """Subset of ``injected`` that ``plugin_cls`` takes as keyword arguments."""
    params = inspect.signature(plugin_cls).parameters
    if any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params.values()):
        return dict(injected)
    return {k: v for k, v in injected.items() if k in params}


class PluginRegistry:
    """Plugin type registry.

    Usage:
        @PluginRegistry.register("pod-extractor")
        class PodExtractor:
            ...

        extractor = PluginRegistry.create("pod-extractor", "pods", {}, store=store)

    A registered class is built with ``cls(name, **parameters)`` unless it
    exposes a ``from_parameters(name, parameters)`` classmethod. Shared
    dependencies passed as keywords to :meth:`create` (e.g. the endpoint
    store) are handed only to classes whose constructor names them.
    """

    _factories: dict[str, PluginFactory] = {}
    _classes: dict[str, type] = {}

    @classmethod
    def register(cls, plugin_type: str):
        """Decorator: register a plugin class under ``plugin_type``."""

        def decorator(plugin_cls):
            factory = getattr(plugin_cls, "from_parameters", None)
            if factory is None:

                def factory(name: str, parameters: dict[str, Any]):
                    return plugin_cls(name, **parameters)

            cls._factories[plugin_type] = factory
            cls._classes[plugin_type] = plugin_cls
            logger.debug("Registered plugin type: %s", plugin_type)
            return plugin_cls

        return decorator

    @classmethod
    def create(
        cls,
        plugin_type: str,
        name: str,
        parameters: dict[str, Any] | None = None,
        **injected: Any,
    ) -> Plugin:
        """Instantiate a plugin.

        Args:
            plugin_type: Registered plugin type
            name: Instance name
            parameters: Keyword parameters for the plugin
            **injected: Shared dependencies offered to the plugin

        Returns:
            New plugin instance

        Raises:
            UnknownPluginTypeError: If the type was never registered
        """
        factory = cls._factories.get(plugin_type)
        if factory is None:
            raise UnknownPluginTypeError(
                f"unknown plugin type {plugin_type!r} (known: {', '.join(cls.list_types())})"
            )
        params = dict(parameters or {})
        params.update(_accepted(cls._classes[plugin_type], injected))
        return factory(name, params)

    @classmethod
    def is_registered(cls, plugin_type: str) -> bool:
        return plugin_type in cls._factories

    @classmethod
    def list_types(cls) -> list[str]:
        """List registered plugin types."""
        return sorted(cls._factories)

    @classmethod
    def unregister(cls, plugin_type: str) -> None:
        """Remove a plugin type (mainly for testing)."""
        cls._factories.pop(plugin_type, None)
        cls._classes.pop(plugin_type, None)
