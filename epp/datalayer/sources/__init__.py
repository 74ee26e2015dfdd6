# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Data source implementations."""

from .base import ExtractorSet
from .http import HTTPDataSource
from .notification import K8sNotificationSource

__all__ = [
    "ExtractorSet",
    "HTTPDataSource",
    "K8sNotificationSource",
]
