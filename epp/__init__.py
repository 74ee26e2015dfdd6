# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""
EPP - endpoint picker for inference request routing.

This package holds the event-driven data layer the endpoint picker routes
on: pluggable data sources and extractors that keep a local, continuously
synchronized view of model-server pods, their health and the models and
LoRA adapters they serve.
"""

from .config import DataLayerConfig, PluginConfig, SourceConfig, build_datalayer
from .errors import (
    CapabilityMismatchError,
    CollectionError,
    ConfigurationError,
    DataLayerError,
    DuplicateExtractorError,
    DuplicateSourceError,
    ExtractionError,
    InvalidExtractorError,
    UnknownPluginTypeError,
)
from .plugin import Plugin, PluginRegistry, TypedName

__version__ = "0.1.0"

__all__ = [
    # Plugins
    "TypedName",
    "Plugin",
    "PluginRegistry",
    # Configuration
    "DataLayerConfig",
    "SourceConfig",
    "PluginConfig",
    "build_datalayer",
    # Errors
    "DataLayerError",
    "InvalidExtractorError",
    "CapabilityMismatchError",
    "DuplicateExtractorError",
    "DuplicateSourceError",
    "UnknownPluginTypeError",
    "ConfigurationError",
    "CollectionError",
    "ExtractionError",
]
