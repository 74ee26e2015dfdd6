# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Models extractor for OpenAI-compatible ``/v1/models`` responses."""

from __future__ import annotations

import logging
from typing import Any

from ...plugin import PluginRegistry, TypedName
from ..store import EndpointStore
from ..types import Endpoint

logger = logging.getLogger(__name__)

MODELS_EXTRACTOR_TYPE = "models-extractor"


def parse_models(data: Any) -> tuple[set[str], set[str]]:
    """Split a ``/v1/models`` body into (base models, LoRA adapters).

    vLLM lists adapters next to base models, marking them with a ``parent``
    pointing at the base model.
    """
    if not isinstance(data, dict) or not isinstance(data.get("data"), list):
        raise ValueError("response is not a model list")

    models: set[str] = set()
    adapters: set[str] = set()
    for entry in data["data"]:
        model_id = entry.get("id") if isinstance(entry, dict) else None
        if not model_id:
            continue
        parent = entry.get("parent")
        if parent and parent != model_id:
            adapters.add(model_id)
        else:
            models.add(model_id)
    return models, adapters


@PluginRegistry.register(MODELS_EXTRACTOR_TYPE)
class ModelsExtractor:
    """Records served models and loaded adapters on the polled endpoint."""

    def __init__(self, name: str, store: EndpointStore):
        self._typed_name = TypedName(type=MODELS_EXTRACTOR_TYPE, name=name)
        self.store = store

    def typed_name(self) -> TypedName:
        return self._typed_name

    async def extract(self, data: Any, endpoint: Endpoint) -> None:
        models, adapters = parse_models(data)
        updated = self.store.update(endpoint.key, models=models, active_adapters=adapters)
        if updated is None:
            logger.debug("Endpoint %s left the store before extraction", endpoint.key)
            return
        logger.debug(
            "Endpoint %s serves models=%s adapters=%s", endpoint.key, sorted(models), sorted(adapters)
        )
