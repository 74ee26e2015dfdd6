# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: Copyright contributors to the SAGE project

"""Tests for the notification source dispatch engine."""

import asyncio
import logging
import threading

import pytest

from epp import (
    CapabilityMismatchError,
    DuplicateExtractorError,
    InvalidExtractorError,
    TypedName,
)
from epp.datalayer import (
    POD_GVK,
    DataSource,
    Endpoint,
    EventType,
    GroupVersionKind,
    K8sNotificationSource,
    LoraAdapterExtractor,
    NotificationEvent,
    NotificationSource,
    Unstructured,
)


class RecordingExtractor:
    """Notification extractor recording every event it receives."""

    def __init__(self, name, fail_on=None):
        self._typed_name = TypedName(type="recording-extractor", name=name)
        self.events = []
        self.fail_on = fail_on or set()

    def typed_name(self):
        return self._typed_name

    async def extract_notification(self, event):
        self.events.append(event)
        if event.object.name in self.fail_on:
            raise RuntimeError(f"cannot process {event.object.name}")

    @property
    def names(self):
        return [e.object.name for e in self.events]


class BaseOnlyExtractor:
    """Satisfies only the base Extractor capability."""

    def typed_name(self):
        return TypedName(type="base-only", name="plain")


class MutatingExtractor(RecordingExtractor):
    """Scribbles over the object it receives."""

    async def extract_notification(self, event):
        await super().extract_notification(event)
        event.object.object["metadata"]["name"] = "mutated"
        event.object.object.setdefault("status", {})["podIP"] = "0.0.0.0"


def make_event(name, event_type=EventType.ADD_OR_UPDATE, **fields):
    obj = {"apiVersion": "v1", "kind": "Pod", "metadata": {"name": name, "namespace": "default"}}
    obj.update(fields)
    return NotificationEvent(type=event_type, object=Unstructured(obj))


@pytest.fixture
def source():
    return K8sNotificationSource("pods", POD_GVK)


class TestConstruction:
    """Tests for source identity and capabilities."""

    def test_typed_name_and_gvk(self, source):
        assert source.typed_name() == TypedName(type="k8s-notification-source", name="pods")
        assert str(source.typed_name()) == "k8s-notification-source/pods"
        assert source.gvk() == GroupVersionKind("", "v1", "Pod")

    def test_custom_plugin_type(self):
        src = K8sNotificationSource("pools", POD_GVK, plugin_type="custom-source")
        assert src.typed_name().type == "custom-source"

    def test_satisfies_capabilities(self, source):
        assert isinstance(source, DataSource)
        assert isinstance(source, NotificationSource)

    def test_starts_without_extractors(self, source):
        assert source.extractors() == []

    @pytest.mark.asyncio
    async def test_collect_is_noop(self, source):
        recorder = RecordingExtractor("rec")
        source.add_extractor(recorder)
        result = await source.collect(Endpoint(name="pod-1", address="10.0.0.1"))
        assert result is None
        assert recorder.events == []


class TestAddExtractor:
    """Tests for extractor registration."""

    def test_add_extractor(self, source):
        source.add_extractor(RecordingExtractor("rec"))
        assert source.extractors() == ["recording-extractor/rec"]

    def test_none_rejected(self, source):
        with pytest.raises(InvalidExtractorError):
            source.add_extractor(None)
        assert source.extractors() == []

    def test_none_is_value_error(self, source):
        with pytest.raises(ValueError):
            source.add_extractor(None)

    def test_base_extractor_rejected(self, source):
        with pytest.raises(CapabilityMismatchError) as exc_info:
            source.add_extractor(BaseOnlyExtractor())
        message = str(exc_info.value)
        assert "base-only/plain" in message
        assert "k8s-notification-source/pods" in message
        assert source.extractors() == []

    def test_object_without_capability_rejected(self, source):
        with pytest.raises(TypeError):
            source.add_extractor(object())

    def test_duplicate_name_rejected(self, source):
        first = RecordingExtractor("rec")
        source.add_extractor(first)

        with pytest.raises(DuplicateExtractorError) as exc_info:
            source.add_extractor(RecordingExtractor("rec"))

        assert "recording-extractor/rec" in str(exc_info.value)
        assert source.extractors() == ["recording-extractor/rec"]

    @pytest.mark.asyncio
    async def test_first_registration_wins(self, source):
        first = RecordingExtractor("rec")
        second = RecordingExtractor("rec")
        source.add_extractor(first)
        with pytest.raises(DuplicateExtractorError):
            source.add_extractor(second)

        await source.notify(make_event("pod-1"))

        assert first.names == ["pod-1"]
        assert second.events == []

    def test_same_name_different_type_is_duplicate(self, source):
        source.add_extractor(RecordingExtractor("shared"))
        with pytest.raises(DuplicateExtractorError):
            source.add_extractor(LoraAdapterExtractor("shared"))

    def test_concurrent_registration_keeps_names_unique(self, source):
        errors = []
        barrier = threading.Barrier(8)

        def register():
            barrier.wait()
            try:
                source.add_extractor(RecordingExtractor("contended"))
            except DuplicateExtractorError as e:
                errors.append(e)

        threads = [threading.Thread(target=register) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert source.extractors() == ["recording-extractor/contended"]
        assert len(errors) == 7


@pytest.mark.asyncio
class TestNotify:
    """Tests for event dispatch."""

    async def test_events_delivered_in_arrival_order(self, source):
        recorders = [RecordingExtractor(f"rec-{i}") for i in range(3)]
        for r in recorders:
            source.add_extractor(r)

        names = [f"pod-{i}" for i in range(20)]
        for name in names:
            await source.notify(make_event(name))

        for r in recorders:
            assert r.names == names

    async def test_mixed_event_types_keep_order(self, source):
        recorder = RecordingExtractor("rec")
        source.add_extractor(recorder)

        await source.notify(make_event("pod-1"))
        await source.notify(make_event("pod-1", EventType.DELETE))
        await source.notify(make_event("pod-1"))

        assert [e.type for e in recorder.events] == [
            EventType.ADD_OR_UPDATE,
            EventType.DELETE,
            EventType.ADD_OR_UPDATE,
        ]

    async def test_failure_does_not_stop_other_extractors(self, source):
        failing = RecordingExtractor("a-failing", fail_on={"pod-1"})
        healthy = RecordingExtractor("b-healthy")
        source.add_extractor(failing)
        source.add_extractor(healthy)

        await source.notify(make_event("pod-1"))
        await source.notify(make_event("pod-2"))

        assert failing.names == ["pod-1", "pod-2"]
        assert healthy.names == ["pod-1", "pod-2"]

    async def test_notify_returns_none_when_all_fail(self, source):
        for i in range(3):
            source.add_extractor(RecordingExtractor(f"rec-{i}", fail_on={"pod-1"}))

        result = await source.notify(make_event("pod-1"))

        assert result is None

    async def test_failures_are_logged(self, source, caplog):
        source.add_extractor(RecordingExtractor("broken", fail_on={"pod-1"}))

        with caplog.at_level(logging.ERROR):
            await source.notify(make_event("pod-1"))

        messages = [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR]
        assert len(messages) == 1
        assert "recording-extractor/broken" in messages[0]
        assert "cannot process pod-1" in messages[0]
        assert "add_or_update" in messages[0]

    async def test_failures_are_counted(self, source):
        source.add_extractor(RecordingExtractor("broken", fail_on={"pod-1"}))
        source.add_extractor(RecordingExtractor("fine"))

        await source.notify(make_event("pod-1"))
        await source.notify(make_event("pod-2"))

        metrics = source.metrics()
        assert metrics.events_dispatched == 2
        assert metrics.events_failed == 1
        assert metrics.failures_for("recording-extractor/broken") == 1
        assert metrics.failures_for("recording-extractor/fine") == 0
        stats = metrics.to_dict()["extractors"]["recording-extractor/broken"]
        assert stats["last_error"] == "cannot process pod-1"

    async def test_no_retry_of_failed_event(self, source):
        failing = RecordingExtractor("failing", fail_on={"pod-1"})
        source.add_extractor(failing)

        await source.notify(make_event("pod-1"))

        assert failing.names == ["pod-1"]

    async def test_delete_carries_last_known_state(self, source):
        recorder = RecordingExtractor("rec")
        source.add_extractor(recorder)

        await source.notify(
            make_event("pod-1", EventType.DELETE, status={"podIP": "10.0.0.7"})
        )

        delivered = recorder.events[0].object
        assert not delivered.is_empty()
        assert delivered.name == "pod-1"
        assert delivered.get("status", "podIP") == "10.0.0.7"

    async def test_repeated_observation_is_delivered(self, source):
        recorder = RecordingExtractor("rec")
        source.add_extractor(recorder)

        event = make_event("pod-1", adapters=["a"])
        await source.notify(event)
        await source.notify(event)

        assert recorder.names == ["pod-1", "pod-1"]

    async def test_mutation_does_not_leak_between_extractors(self, source):
        mutating = MutatingExtractor("a-mutating")
        observer = RecordingExtractor("b-observer")
        source.add_extractor(mutating)
        source.add_extractor(observer)

        await source.notify(make_event("pod-1", status={"podIP": "10.0.0.1"}))

        seen = observer.events[0].object
        assert seen.name == "pod-1"
        assert seen.get("status", "podIP") == "10.0.0.1"

    async def test_no_extractors(self, source):
        await source.notify(make_event("pod-1"))
        assert source.metrics().events_dispatched == 1

    async def test_registration_during_dispatch(self, source):
        late = RecordingExtractor("late")

        class Registering(RecordingExtractor):
            async def extract_notification(self, event):
                await super().extract_notification(event)
                if late.typed_name().name not in [n.split("/")[1] for n in source.extractors()]:
                    source.add_extractor(late)

        source.add_extractor(Registering("registering"))

        await source.notify(make_event("pod-1"))
        await source.notify(make_event("pod-2"))

        # Registered mid-dispatch: sees only the following event
        assert late.names == ["pod-2"]

    async def test_cancellation_does_not_abort_fan_out(self, source):
        gate = asyncio.Event()
        started = asyncio.Event()

        class Blocking(RecordingExtractor):
            async def extract_notification(self, event):
                started.set()
                await gate.wait()
                await super().extract_notification(event)

        blocking = Blocking("a-blocking")
        after = RecordingExtractor("b-after")
        source.add_extractor(blocking)
        source.add_extractor(after)

        task = asyncio.create_task(source.notify(make_event("pod-1")))
        await started.wait()
        task.cancel()
        await asyncio.sleep(0)
        assert not task.done()

        gate.set()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert blocking.names == ["pod-1"]
        assert after.names == ["pod-1"]

    async def test_repeated_cancellation_does_not_abort_fan_out(self, source):
        gate = asyncio.Event()
        started = asyncio.Event()

        class Blocking(RecordingExtractor):
            async def extract_notification(self, event):
                started.set()
                await gate.wait()
                await super().extract_notification(event)

        blocking = Blocking("a-blocking")
        after = RecordingExtractor("b-after")
        source.add_extractor(blocking)
        source.add_extractor(after)

        task = asyncio.create_task(source.notify(make_event("pod-1")))
        await started.wait()
        for _ in range(3):
            task.cancel()
            for _ in range(3):
                await asyncio.sleep(0)
            assert not task.done()

        gate.set()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert blocking.names == ["pod-1"]
        assert after.names == ["pod-1"]
        assert source.metrics().events_failed == 0

    async def test_extractor_raising_cancelled_error_is_isolated(self, source, caplog):
        class CancelledInside(RecordingExtractor):
            async def extract_notification(self, event):
                await super().extract_notification(event)
                inner = asyncio.get_running_loop().create_future()
                inner.cancel()
                await inner

        failing = CancelledInside("a-cancelled")
        after = RecordingExtractor("b-after")
        source.add_extractor(failing)
        source.add_extractor(after)

        with caplog.at_level(logging.ERROR):
            await source.notify(make_event("pod-1"))
            await source.notify(make_event("pod-2"))

        assert after.names == ["pod-1", "pod-2"]
        assert source.metrics().failures_for("recording-extractor/a-cancelled") == 2
        assert source.metrics().events_failed == 2
        assert "extractor recording-extractor/a-cancelled: CancelledError" in caplog.text


@pytest.mark.asyncio
class TestLoraScenario:
    """End-to-end scenario with the LoRA adapter extractor."""

    async def test_add_then_delete(self):
        source = K8sNotificationSource("pods", POD_GVK)
        tracker = LoraAdapterExtractor("lora-tracker")
        source.add_extractor(tracker)
        assert source.extractors() == ["lora-adapters-extractor/lora-tracker"]

        obj = {"apiVersion": "v1", "kind": "Pod", "metadata": {"name": "pod-1"}, "adapters": ["a", "b"]}

        await source.notify(NotificationEvent(EventType.ADD_OR_UPDATE, Unstructured(obj)))
        assert tracker.adapters("pod-1") == frozenset({"a", "b"})

        await source.notify(NotificationEvent(EventType.DELETE, Unstructured(obj)))
        assert tracker.adapters("pod-1") is None
        assert "pod-1" not in tracker.snapshot()

    async def test_duplicate_delivery_converges(self):
        source = K8sNotificationSource("pods", POD_GVK)
        tracker = LoraAdapterExtractor("lora-tracker")
        source.add_extractor(tracker)

        obj = {"apiVersion": "v1", "kind": "Pod", "metadata": {"name": "pod-1"}, "adapters": ["a"]}
        for _ in range(3):
            await source.notify(NotificationEvent(EventType.ADD_OR_UPDATE, Unstructured(obj)))

        assert tracker.snapshot() == {"pod-1": frozenset({"a"})}
