"""Event recording, live fan-out and performance samples."""

import pytest

from integration_hub.services.metrics import CallTimer, MetricsRecorder, PerformanceMetric
from integration_hub.workflows.events import EVENT_CHANNEL, EventBroadcaster
from integration_hub.workflows.models import EventSeverity, IntegrationEvent


def make_event(title="Something happened"):
    return IntegrationEvent(type="workflow_error", severity=EventSeverity.HIGH, title=title)


@pytest.mark.asyncio
async def test_recorder_persists_then_broadcasts(events, event_repository, broadcaster):
    async with broadcaster.subscribe() as queue:
        event = await events.record(make_event())

        channel, received = queue.get_nowait()

    assert channel == EVENT_CHANNEL
    assert received is event
    assert await event_repository.get(event.id) is event
    assert broadcaster.subscriber_count == 0


@pytest.mark.asyncio
async def test_slow_subscriber_drops_oldest():
    broadcaster = EventBroadcaster(queue_size=2)
    async with broadcaster.subscribe() as queue:
        for title in ("one", "two", "three"):
            broadcaster.send(EVENT_CHANNEL, make_event(title))

        titles = [queue.get_nowait()[1].title for _ in range(queue.qsize())]

    assert titles == ["two", "three"]


@pytest.mark.asyncio
async def test_resolve_through_recorder(events):
    event = await events.record(make_event())
    assert (await events.resolve(event.id)).resolved is True
    assert await events.list(unresolved_only=True) == []


def test_metrics_buffer_is_bounded():
    recorder = MetricsRecorder(max_samples=3)
    for response_time in (10, 20, 30, 40):
        recorder.record_metric(PerformanceMetric(response_time=response_time, integration_id="a"))

    analytics = recorder.get_analytics()
    assert len(recorder) == 3
    assert analytics["total_requests"] == 3
    assert analytics["average_response_time"] == 30.0


def test_metrics_analytics_per_integration():
    recorder = MetricsRecorder()
    recorder.record_metric(PerformanceMetric(response_time=10, error_rate=1.0, integration_id="a"))
    recorder.record_metric(PerformanceMetric(response_time=30, error_rate=0.0, integration_id="a"))
    recorder.record_metric(PerformanceMetric(response_time=99, integration_id="b"))

    analytics = recorder.get_analytics("a")
    assert analytics["total_requests"] == 2
    assert analytics["average_response_time"] == 20.0
    assert analytics["average_error_rate"] == 0.5
    assert recorder.get_analytics("missing")["total_requests"] == 0


def test_call_timer_sample():
    timer = CallTimer()
    sample = timer.sample(error=True, integration_id="a")
    assert sample.error_rate == 1.0
    assert sample.response_time >= 0
    assert sample.integration_id == "a"
