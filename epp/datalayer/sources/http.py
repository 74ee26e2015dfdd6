# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Poll-based data source fetching JSON from model-server endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from ...errors import CollectionError, ExtractionError
from ...plugin import PluginRegistry, TypedName
from ..interfaces import Extractor, PollExtractor
from ..metrics import DispatchMetrics
from ..types import Endpoint
from .base import ExtractorSet

logger = logging.getLogger(__name__)

HTTP_SOURCE_TYPE = "http-data-source"


@PluginRegistry.register(HTTP_SOURCE_TYPE)
class HTTPDataSource:
    """Polls ``http://<address>:<port><path>`` and feeds the JSON body to extractors.

    The same HTTP session is reused across collections; call :meth:`close`
    on shutdown.
    """

    def __init__(
        self,
        name: str,
        path: str = "/v1/models",
        port: int | None = None,
        timeout: float = 5.0,
        plugin_type: str = HTTP_SOURCE_TYPE,
    ):
        self._typed_name = TypedName(type=plugin_type, name=name)
        self.path = path if path.startswith("/") else f"/{path}"
        self.port = port
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.http_session: aiohttp.ClientSession | None = None
        self._extractors: ExtractorSet[PollExtractor] = ExtractorSet(
            self._typed_name, PollExtractor
        )
        self._metrics = DispatchMetrics()

    def typed_name(self) -> TypedName:
        return self._typed_name

    def extractors(self) -> list[str]:
        return self._extractors.names()

    def add_extractor(self, extractor: Extractor | None) -> None:
        """Register a PollExtractor.

        Raises:
            InvalidExtractorError: extractor is None
            CapabilityMismatchError: extractor is not a PollExtractor
            DuplicateExtractorError: an extractor with this name exists
        """
        self._extractors.add(extractor)
        logger.info("Registered extractor %s on source %s", extractor.typed_name(), self._typed_name)

    def metrics(self) -> DispatchMetrics:
        return self._metrics

    def url_for(self, endpoint: Endpoint) -> str:
        port = self.port if self.port is not None else endpoint.port
        return f"http://{endpoint.address}:{port}{self.path}"

    async def initialize(self) -> None:
        if not self.http_session:
            self.http_session = aiohttp.ClientSession(timeout=self.timeout)

    async def close(self) -> None:
        if self.http_session:
            await self.http_session.close()
            self.http_session = None

    async def collect(self, endpoint: Endpoint) -> None:
        """Fetch data from ``endpoint`` and hand it to every extractor.

        Raises:
            CollectionError: If the endpoint has no address, the request
                fails or the body is not JSON
        """
        if not endpoint.address:
            raise CollectionError(f"endpoint {endpoint.key} has no address")

        data = await self._fetch(endpoint)

        failures: list[tuple[str, BaseException]] = []
        for extractor in self._extractors.snapshot():
            try:
                await extractor.extract(data, endpoint)
            except Exception as e:
                failures.append((str(extractor.typed_name()), e))

        self._metrics.record(failures)
        if failures:
            logger.error(
                "extractor(s) failed processing collection: source=%s endpoint=%s: %s",
                self._typed_name,
                endpoint.key,
                ExtractionError(failures),
            )

    async def _fetch(self, endpoint: Endpoint) -> Any:
        if not self.http_session:
            await self.initialize()

        url = self.url_for(endpoint)
        try:
            async with self.http_session.get(url) as response:
                if response.status != 200:
                    body = await response.text()
                    raise CollectionError(f"GET {url} returned {response.status}: {body[:200]}")
                return await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise CollectionError(f"GET {url} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise CollectionError(f"GET {url} timed out") from e
        except ValueError as e:
            raise CollectionError(f"GET {url} returned invalid JSON: {e}") from e

    def __repr__(self) -> str:
        return f"HTTPDataSource({self._typed_name}, path={self.path})"
