# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Extractor plugins maintaining the endpoint store."""

from .lora import LoraAdapterExtractor
from .models import ModelsExtractor
from .pods import PodExtractor

__all__ = [
    "LoraAdapterExtractor",
    "ModelsExtractor",
    "PodExtractor",
]
