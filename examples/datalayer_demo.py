#!/usr/bin/env python3
# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""EPP data layer example.

Wires the data layer from examples/datalayer.yaml and replays a few pod
watch events through it, printing the endpoint view the scheduler reads.
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

from epp import DataLayerConfig, build_datalayer  # noqa: E402
from epp.datalayer import POD_GVK, Unstructured  # noqa: E402

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

ANNOTATION = "inference.networking.x-k8s.io/lora-adapters"


def pod(name: str, ip: str, ready: bool, adapters: str) -> Unstructured:
    return Unstructured(
        {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": {
                "name": name,
                "namespace": "default",
                "labels": {"app": "vllm-llama3-8b-instruct"},
                "annotations": {ANNOTATION: adapters},
            },
            "status": {
                "podIP": ip,
                "conditions": [{"type": "Ready", "status": "True" if ready else "False"}],
            },
        }
    )


def show(title: str, layer) -> None:
    print(f"\n{title}")
    for ep in sorted(layer.store.list_endpoints(), key=lambda e: e.key):
        print(f"  {ep.key:<20} {ep.address:<12} ready={ep.ready!s:<5} adapters={sorted(ep.declared_adapters)}")


async def main():
    """Run the data layer example."""
    config = DataLayerConfig.load_yaml(str(Path(__file__).parent / "datalayer.yaml"))
    layer = build_datalayer(config)
    await layer.start()
    pump = layer.pump_for(POD_GVK)

    await pump.resync(
        [
            pod("vllm-0", "10.0.0.10", True, "sql-lora,tweet-summary"),
            pod("vllm-1", "10.0.0.11", False, "sql-lora"),
        ]
    )
    await pump.join()
    show("After initial list:", layer)

    await pump.put_update(None, pod("vllm-1", "10.0.0.11", True, "sql-lora"))
    await pump.put_delete(pod("vllm-0", "10.0.0.10", True, "sql-lora,tweet-summary"))
    await pump.join()
    show("After update and delete:", layer)

    print("\nDiagnostics:", layer.to_dict())
    await layer.stop()


if __name__ == "__main__":
    asyncio.run(main())
