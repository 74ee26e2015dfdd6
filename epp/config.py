# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Data layer configuration and wiring.

Configuration is a list of sources, each with its extractors:

    sources:
      - type: k8s-notification-source
        name: pods
        parameters:
          gvk: {group: "", version: v1, kind: Pod}
        extractors:
          - type: pod-extractor
            name: pods
            parameters: {selector: {app: vllm-llama3}}
          - type: lora-adapters-extractor
            name: lora-tracker
      - type: http-data-source
        name: models
        parameters: {path: /v1/models}
        extractors:
          - type: models-extractor
            name: models
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

# Registers the built-in plugin types
from . import datalayer  # noqa: F401
from .datalayer.interfaces import NotificationSource
from .datalayer.pump import EventPump
from .datalayer.registry import DataSourceRegistry
from .datalayer.runtime import DataLayer
from .datalayer.store import EndpointStore
from .datalayer.types import Unstructured
from .errors import ConfigurationError, DataLayerError
from .plugin import PluginRegistry

logger = logging.getLogger(__name__)


@dataclass
class PluginConfig:
    """A plugin instance: registered type, instance name and parameters."""

    type: str
    name: str
    parameters: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "name": self.name, "parameters": dict(self.parameters)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PluginConfig:
        """Deserialize from dictionary; ``name`` defaults to ``type``."""
        if "type" not in data:
            raise ConfigurationError(f"plugin entry without type: {data!r}")
        return cls(
            type=data["type"],
            name=data.get("name") or data["type"],
            parameters=dict(data.get("parameters") or {}),
        )


@dataclass
class SourceConfig(PluginConfig):
    """A data source and the extractors registered on it."""

    extractors: list[PluginConfig] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["extractors"] = [e.to_dict() for e in self.extractors]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SourceConfig:
        base = PluginConfig.from_dict(data)
        return cls(
            type=base.type,
            name=base.name,
            parameters=base.parameters,
            extractors=[PluginConfig.from_dict(e) for e in data.get("extractors") or []],
        )


@dataclass
class DataLayerConfig:
    """Top-level data layer configuration.

    Attributes:
        sources: Sources to wire, in order.
        pump_queue_size: Capacity of each per-kind event queue.
        http_timeout: Default timeout (seconds) for HTTP sources.
    """

    sources: list[SourceConfig] = field(default_factory=list)
    pump_queue_size: int = 1024
    http_timeout: float = 5.0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "sources": [s.to_dict() for s in self.sources],
            "pump_queue_size": self.pump_queue_size,
            "http_timeout": self.http_timeout,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DataLayerConfig:
        """Deserialize from dictionary."""
        data = dict(data)
        data["sources"] = [SourceConfig.from_dict(s) for s in data.get("sources") or []]
        return cls(**data)

    @classmethod
    def load_yaml(cls, path: str) -> DataLayerConfig:
        """Load configuration from a YAML file."""
        import yaml

        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    def save_yaml(self, path: str) -> None:
        """Save configuration to a YAML file."""
        import yaml

        with open(path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)


def build_datalayer(
    config: DataLayerConfig,
    store: EndpointStore | None = None,
) -> DataLayer:
    """Wire sources and extractors from ``config``.

    Any failure aborts wiring: nothing is started and the first error is
    raised as ConfigurationError.

    Args:
        config: Data layer configuration
        store: Endpoint store shared by extractors (a new one if None)

    Returns:
        The wired, not yet started, data layer
    """
    store = store if store is not None else EndpointStore()
    registry = DataSourceRegistry()
    pumps = {}

    for source_cfg in config.sources:
        try:
            params = dict(source_cfg.parameters)
            if source_cfg.type == "http-data-source":
                params.setdefault("timeout", config.http_timeout)
            source = PluginRegistry.create(source_cfg.type, source_cfg.name, params)
            registry.register(source)

            for ext_cfg in source_cfg.extractors:
                extractor = PluginRegistry.create(
                    ext_cfg.type, ext_cfg.name, ext_cfg.parameters, store=store
                )
                if isinstance(source, NotificationSource):
                    _check_input_type(extractor, source)
                source.add_extractor(extractor)
        except (DataLayerError, TypeError, ValueError, KeyError) as e:
            logger.error("Failed to wire data source %s/%s: %s", source_cfg.type, source_cfg.name, e)
            raise ConfigurationError(
                f"wiring data source {source_cfg.type}/{source_cfg.name}: {e}"
            ) from e

        if isinstance(source, NotificationSource):
            pumps[source.gvk()] = EventPump(registry, source.gvk(), config.pump_queue_size)

    logger.info(
        "Data layer wired: %d source(s), %d watched kind(s)", len(registry.sources()), len(pumps)
    )
    return DataLayer(registry=registry, store=store, pumps=pumps)


def _check_input_type(extractor: Any, source: NotificationSource) -> None:
    expected = getattr(extractor, "expected_input_type", None)
    if expected is None:
        return
    input_type = expected()
    if not (isinstance(input_type, type) and issubclass(Unstructured, input_type)):
        raise ConfigurationError(
            f"extractor {extractor.typed_name()} expects {input_type!r}, "
            f"source {source.typed_name()} delivers {Unstructured.__name__}"
        )
