# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""
EPP data layer - a continuously synchronized view of cluster state.

Watch events for each resource kind are deep-copied by the registry,
classified as AddOrUpdate or Delete, and pushed through the kind's
notification source to its extractors, which maintain the endpoint store
the scheduler reads. Poll-based sources complement this with data fetched
from the model servers themselves.
"""

from .extractors import LoraAdapterExtractor, ModelsExtractor, PodExtractor
from .interfaces import (
    DataSource,
    Extractor,
    NotificationExtractor,
    NotificationSource,
    PollExtractor,
)
from .metrics import DispatchMetrics, ExtractorStats
from .pump import EventPump
from .registry import DataSourceRegistry
from .runtime import DataLayer
from .sources import HTTPDataSource, K8sNotificationSource
from .store import EndpointStore
from .types import (
    POD_GVK,
    UNSTRUCTURED_TYPE,
    DeletedFinalStateUnknown,
    Endpoint,
    EventType,
    GroupVersionKind,
    NotificationEvent,
    Unstructured,
)

__all__ = [
    # Types
    "GroupVersionKind",
    "POD_GVK",
    "Unstructured",
    "UNSTRUCTURED_TYPE",
    "DeletedFinalStateUnknown",
    "EventType",
    "NotificationEvent",
    "Endpoint",
    # Capabilities
    "Extractor",
    "PollExtractor",
    "NotificationExtractor",
    "DataSource",
    "NotificationSource",
    # Sources
    "K8sNotificationSource",
    "HTTPDataSource",
    # Extractors
    "PodExtractor",
    "LoraAdapterExtractor",
    "ModelsExtractor",
    # Core
    "DataSourceRegistry",
    "EventPump",
    "EndpointStore",
    "DataLayer",
    "DispatchMetrics",
    "ExtractorStats",
]
