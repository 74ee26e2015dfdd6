# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""pytest configuration for EPP data layer tests."""

import logging
import sys
from pathlib import Path

import pytest
from aioresponses import aioresponses

# Configure logging
logging.basicConfig(level=logging.INFO)

# Set up path for epp imports
root = Path(__file__).parent.parent.parent
if str(root) not in sys.path:
    sys.path.insert(0, str(root))

from epp.datalayer import EndpointStore, Unstructured  # noqa: E402


def make_pod(
    name,
    namespace="default",
    ip="10.0.0.1",
    ready=True,
    labels=None,
    adapters=None,
    annotations=None,
):
    """Build a Pod object the way the watch delivers it."""
    obj = {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": dict(labels or {"app": "vllm"}),
            "annotations": dict(annotations or {}),
        },
        "status": {
            "podIP": ip,
            "conditions": [{"type": "Ready", "status": "True" if ready else "False"}],
        },
    }
    if adapters is not None:
        obj["adapters"] = list(adapters)
    return Unstructured(obj)


@pytest.fixture
def pod_factory():
    """Fixture providing the pod object builder."""
    return make_pod


@pytest.fixture
def store():
    """Fixture providing an empty endpoint store."""
    return EndpointStore()


@pytest.fixture
def mock_aiohttp():
    """Fixture providing mocked aiohttp responses for model servers."""
    with aioresponses() as m:
        yield m


@pytest.fixture
def models_response():
    """Fixture providing a vLLM /v1/models response with two adapters."""
    return {
        "object": "list",
        "data": [
            {
                "id": "meta-llama/Llama-3.1-8B-Instruct",
                "object": "model",
                "owned_by": "vllm",
                "root": "meta-llama/Llama-3.1-8B-Instruct",
                "parent": None,
            },
            {
                "id": "sql-lora",
                "object": "model",
                "owned_by": "vllm",
                "root": "/adapters/sql-lora",
                "parent": "meta-llama/Llama-3.1-8B-Instruct",
            },
            {
                "id": "tweet-summary",
                "object": "model",
                "owned_by": "vllm",
                "root": "/adapters/tweet-summary",
                "parent": "meta-llama/Llama-3.1-8B-Instruct",
            },
        ],
    }
