# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Pod extractor: keeps the endpoint set in step with model-server pods."""

from __future__ import annotations

import logging

from ...plugin import PluginRegistry, TypedName
from ..store import EndpointStore
from ..types import UNSTRUCTURED_TYPE, Endpoint, EventType, NotificationEvent, Unstructured

logger = logging.getLogger(__name__)

POD_EXTRACTOR_TYPE = "pod-extractor"


def is_pod_ready(pod: Unstructured) -> bool:
    """True when the pod is not terminating and reports Ready=True."""
    if pod.get("metadata", "deletionTimestamp"):
        return False
    for condition in pod.get("status", "conditions", default=None) or []:
        if condition.get("type") == "Ready":
            return condition.get("status") == "True"
    return False


@PluginRegistry.register(POD_EXTRACTOR_TYPE)
class PodExtractor:
    """Upserts an endpoint per matching pod and removes it on delete.

    Args:
        name: Instance name
        store: Endpoint store to maintain
        selector: Labels a pod must carry to be tracked (all must match)
        target_port: Model server port on every pod
    """

    def __init__(
        self,
        name: str,
        store: EndpointStore,
        selector: dict[str, str] | None = None,
        target_port: int = 8000,
    ):
        self._typed_name = TypedName(type=POD_EXTRACTOR_TYPE, name=name)
        self.store = store
        self.selector = dict(selector or {})
        self.target_port = target_port

    def typed_name(self) -> TypedName:
        return self._typed_name

    def expected_input_type(self) -> type:
        return UNSTRUCTURED_TYPE

    def matches(self, pod: Unstructured) -> bool:
        labels = pod.labels
        return all(labels.get(k) == v for k, v in self.selector.items())

    async def extract_notification(self, event: NotificationEvent) -> None:
        pod = event.object
        if not pod.name:
            raise ValueError("pod object has no metadata.name")

        if event.type is EventType.DELETE or not self.matches(pod):
            if self.store.remove(pod.key) is not None:
                logger.info("Endpoint %s removed (%s)", pod.key, event.type.value)
            return

        endpoint = self.store.upsert(
            Endpoint(
                name=pod.name,
                namespace=pod.namespace,
                address=pod.get("status", "podIP", default="") or "",
                port=self.target_port,
                labels=pod.labels,
                ready=is_pod_ready(pod),
            )
        )
        logger.debug(
            "Endpoint %s at %s ready=%s", endpoint.key, endpoint.address, endpoint.ready
        )
