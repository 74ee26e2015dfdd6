# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Tests for the poll-based HTTP data source."""

import pytest
from aioresponses import aioresponses

from epp import (
    CapabilityMismatchError,
    CollectionError,
    DuplicateExtractorError,
    InvalidExtractorError,
    TypedName,
)
from epp.datalayer import (
    DataSource,
    Endpoint,
    HTTPDataSource,
    LoraAdapterExtractor,
    ModelsExtractor,
    NotificationSource,
)

MODELS_URL = "http://10.0.0.1:8000/v1/models"


class RecordingPollExtractor:
    def __init__(self, name, fail=False):
        self._typed_name = TypedName(type="recording-poll", name=name)
        self.calls = []
        self.fail = fail

    def typed_name(self):
        return self._typed_name

    async def extract(self, data, endpoint):
        self.calls.append((data, endpoint.key))
        if self.fail:
            raise RuntimeError("extract failed")


@pytest.fixture
def endpoint():
    return Endpoint(name="pod-1", namespace="default", address="10.0.0.1", port=8000, ready=True)


class TestRegistration:
    """Tests for extractor registration on HTTP sources."""

    def test_is_poll_source(self):
        source = HTTPDataSource("models")
        assert isinstance(source, DataSource)
        assert not isinstance(source, NotificationSource)
        assert str(source.typed_name()) == "http-data-source/models"

    def test_accepts_poll_extractor(self, store):
        source = HTTPDataSource("models")
        source.add_extractor(ModelsExtractor("models", store))
        assert source.extractors() == ["models-extractor/models"]

    def test_rejects_notification_extractor(self):
        source = HTTPDataSource("models")
        with pytest.raises(CapabilityMismatchError):
            source.add_extractor(LoraAdapterExtractor("lora"))
        assert source.extractors() == []

    def test_rejects_none_and_duplicates(self):
        source = HTTPDataSource("models")
        with pytest.raises(InvalidExtractorError):
            source.add_extractor(None)
        source.add_extractor(RecordingPollExtractor("rec"))
        with pytest.raises(DuplicateExtractorError):
            source.add_extractor(RecordingPollExtractor("rec"))
        assert source.extractors() == ["recording-poll/rec"]

    def test_url_for(self, endpoint):
        assert HTTPDataSource("m").url_for(endpoint) == MODELS_URL
        assert HTTPDataSource("m", path="metrics", port=9090).url_for(endpoint) == (
            "http://10.0.0.1:9090/metrics"
        )


@pytest.mark.asyncio
class TestCollect:
    """Tests for HTTPDataSource.collect."""

    async def test_collect_feeds_extractors(self, endpoint, models_response):
        source = HTTPDataSource("models")
        recorder = RecordingPollExtractor("rec")
        source.add_extractor(recorder)

        with aioresponses() as m:
            m.get(MODELS_URL, payload=models_response, status=200)
            await source.collect(endpoint)

        assert recorder.calls == [(models_response, "default/pod-1")]
        assert source.metrics().events_dispatched == 1
        await source.close()

    async def test_collect_updates_store(self, store, endpoint, models_response, mock_aiohttp):
        store.upsert(endpoint)
        source = HTTPDataSource("models")
        source.add_extractor(ModelsExtractor("models", store))

        mock_aiohttp.get(MODELS_URL, payload=models_response, status=200)
        await source.collect(endpoint)

        updated = store.get("default/pod-1")
        assert updated.models == {"meta-llama/Llama-3.1-8B-Instruct"}
        assert updated.active_adapters == {"sql-lora", "tweet-summary"}
        await source.close()

    async def test_http_error_raises(self, endpoint, mock_aiohttp):
        source = HTTPDataSource("models")
        recorder = RecordingPollExtractor("rec")
        source.add_extractor(recorder)

        mock_aiohttp.get(MODELS_URL, status=503, body="unavailable")
        with pytest.raises(CollectionError) as exc_info:
            await source.collect(endpoint)

        assert "503" in str(exc_info.value)
        assert recorder.calls == []
        await source.close()

    async def test_invalid_json_raises(self, endpoint, mock_aiohttp):
        source = HTTPDataSource("models")
        mock_aiohttp.get(MODELS_URL, status=200, body="not json")
        with pytest.raises(CollectionError):
            await source.collect(endpoint)
        await source.close()

    async def test_connection_error_raises(self, endpoint, mock_aiohttp):
        source = HTTPDataSource("models")
        # No mocked response: aioresponses raises a connection error
        with pytest.raises(CollectionError):
            await source.collect(endpoint)
        await source.close()

    async def test_endpoint_without_address(self):
        source = HTTPDataSource("models")
        with pytest.raises(CollectionError):
            await source.collect(Endpoint(name="pod-1"))

    async def test_extractor_failure_isolated(self, endpoint, models_response, mock_aiohttp):
        source = HTTPDataSource("models")
        failing = RecordingPollExtractor("a-failing", fail=True)
        healthy = RecordingPollExtractor("b-healthy")
        source.add_extractor(failing)
        source.add_extractor(healthy)

        mock_aiohttp.get(MODELS_URL, payload=models_response, status=200)
        await source.collect(endpoint)

        assert len(failing.calls) == 1
        assert len(healthy.calls) == 1
        assert source.metrics().failures_for("recording-poll/a-failing") == 1
        await source.close()
