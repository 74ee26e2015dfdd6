# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Exceptions raised by the EPP data layer."""

from __future__ import annotations


class DataLayerError(Exception):
    """Base class for data layer errors."""


class InvalidExtractorError(DataLayerError, ValueError):
    """An extractor argument was missing (None)."""


class CapabilityMismatchError(DataLayerError, TypeError):
    """A plugin lacks the capability its owner requires."""


class DuplicateExtractorError(DataLayerError):
    """An extractor with the same name is already registered on a source."""


class DuplicateSourceError(DataLayerError):
    """A source name or watched kind is already taken."""


class UnknownPluginTypeError(DataLayerError, KeyError):
    """No factory is registered for the requested plugin type."""

    def __str__(self) -> str:
        # KeyError quotes its argument
        return str(self.args[0]) if self.args else ""


class ConfigurationError(DataLayerError):
    """Wiring the data layer from configuration failed."""


class CollectionError(DataLayerError):
    """A poll-based source could not fetch data from an endpoint."""


class ExtractionError(DataLayerError):
    """Aggregate of extractor failures for a single event or collection.

    Attributes:
        failures: (extractor name, exception) pairs, in dispatch order
    """

    def __init__(self, failures: list[tuple[str, BaseException]]):
        self.failures = list(failures)
        super().__init__(
            "; ".join(
                f"extractor {name}: {str(exc) or type(exc).__name__}" for name, exc in self.failures
            )
        )

    @property
    def extractor_names(self) -> list[str]:
        return [name for name, _ in self.failures]

    def __len__(self) -> int:
        return len(self.failures)
