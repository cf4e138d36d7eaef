"""Tests for the Redis-facing tracking pipeline, with a mocked Redis client."""
from __future__ import annotations

import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from structlog.testing import capture_logs

from track_shared.events.publisher import GROUP_TRACKER, ensure_consumer_group, read_group
from track_shared.settings import Settings
from tracker.centroid_tracker import CentroidTracker
from tracker.config import TrackerConfig, build_config
from tracker.errors import InvalidConfiguration
from tracker.frame_adapter import FrameAdapter
from tracker.main import build_pipelines, run
from tracker.pipeline import TrackingPipeline

_FRAMES = Path(__file__).parent.parent / "data" / "sample_frames.jsonl"


def _entries(*payloads: str) -> list:
    """Shape an XREADGROUP reply for the given payloads."""
    return [
        (
            b"detections:cam-test",
            [(f"{i + 1}-0".encode(), {b"data": p.encode()}) for i, p in enumerate(payloads)],
        )
    ]


def _published(redis: AsyncMock) -> list[dict]:
    return [json.loads(c.args[1]["data"]) for c in redis.xadd.call_args_list]


@pytest.fixture()
def config() -> TrackerConfig:
    return TrackerConfig(camera_ids=["cam-test"], consumer_name="tracker-test", log_interval=2)


@pytest.fixture()
def pipeline(config) -> TrackingPipeline:
    return TrackingPipeline("cam-test", config, FrameAdapter(CentroidTracker(50, 50.0)))


@pytest.fixture()
def redis() -> AsyncMock:
    client = AsyncMock()
    client.xadd.return_value = b"99-0"
    return client


def test_sample_frames_processed_in_order(pipeline, redis):
    frames = [line for line in _FRAMES.read_text().splitlines() if line.strip()]
    redis.xreadgroup.return_value = _entries(*frames)

    handled = asyncio.run(pipeline.poll_once(redis))

    assert handled == 6
    # Frame 4 (inverted box) and frame 5 (no bbox field) are dropped
    assert pipeline.frame_count == 4
    assert pipeline.dropped_count == 2
    assert _published(redis) == [
        {"0": [5, 5]},
        {"0": [7, 7], "1": [105, 105]},
        {"0": [7, 7], "1": [105, 105]},
        {"0": [9, 9], "1": [108, 106]},
    ]
    assert pipeline._adapter.tracker.registry.disappeared == {0: 0, 1: 0}
    acked = [c.args[2] for c in redis.xack.call_args_list]
    assert acked == ["1-0", "2-0", "3-0", "4-0", "5-0", "6-0"]


def test_publishes_to_camera_tracks_stream(pipeline, redis):
    redis.xreadgroup.return_value = _entries('[{"bbox": [0, 0, 10, 10]}]')

    asyncio.run(pipeline.poll_once(redis))

    call = redis.xadd.call_args
    assert call.args[0] == "tracks:cam-test"
    assert call.kwargs == {"maxlen": 1000, "approximate": True}
    redis.xack.assert_awaited_once_with("detections:cam-test", "tracker-workers", "1-0")


def test_entry_without_data_field_is_dropped(pipeline, redis):
    redis.xreadgroup.return_value = [(b"detections:cam-test", [(b"1-0", {b"other": b"x"})])]

    asyncio.run(pipeline.poll_once(redis))

    redis.xadd.assert_not_awaited()
    redis.xack.assert_awaited_once()
    assert pipeline.dropped_count == 1


def test_publish_failure_is_logged_and_acked(pipeline, redis):
    redis.xadd.side_effect = ConnectionError("redis went away")
    redis.xreadgroup.return_value = _entries('[{"bbox": [0, 0, 10, 10]}]')

    asyncio.run(pipeline.poll_once(redis))

    redis.xack.assert_awaited_once()
    # The update itself went through
    assert pipeline._adapter.tracker.registry.positions == {0: (5, 5)}


def test_non_utf8_entry_is_dropped_and_batch_continues(pipeline, redis):
    redis.xreadgroup.return_value = [
        (
            b"detections:cam-test",
            [
                (b"1-0", {b"data": b"\xff\xfe"}),
                (b"2-0", {b"data": b'[{"bbox": [0, 0, 10, 10]}]'}),
            ],
        )
    ]

    assert asyncio.run(pipeline.poll_once(redis)) == 2

    assert pipeline.dropped_count == 1
    assert pipeline.frame_count == 1
    assert _published(redis) == [{"0": [5, 5]}]
    acked = [c.args[2] for c in redis.xack.call_args_list]
    assert acked == ["1-0", "2-0"]


def test_frame_tracked_logged_at_info(pipeline, redis):
    redis.xreadgroup.return_value = _entries(
        '[{"bbox": [0, 0, 10, 10]}, {"bbox": [50, 50, 60, 60]}]'
    )

    with capture_logs() as logs:
        asyncio.run(pipeline.poll_once(redis))

    tracked = [e for e in logs if e["event"] == "frame_tracked"]
    assert len(tracked) == 1
    assert tracked[0]["log_level"] == "info"
    assert tracked[0]["tracked_objects"] == 2


def test_empty_read_does_nothing(pipeline, redis):
    redis.xreadgroup.return_value = []

    assert asyncio.run(pipeline.poll_once(redis)) == 0
    redis.xadd.assert_not_awaited()
    redis.xack.assert_not_awaited()


# ── Stream helpers ────────────────────────────────────────────────────────────

def test_existing_consumer_group_is_tolerated(redis):
    redis.xgroup_create.side_effect = Exception("BUSYGROUP Consumer Group name already exists")
    asyncio.run(ensure_consumer_group(redis, "detections:cam-test", "tracker-workers"))


def test_read_group_keeps_undecodable_values_as_bytes(redis):
    redis.xreadgroup.return_value = [
        (b"detections:cam-test", [(b"1-0", {b"data": b"\xff", b"ok": b"fine"})])
    ]

    messages = asyncio.run(
        read_group(redis, "detections:cam-test", GROUP_TRACKER, "tracker-test")
    )

    assert messages == [("1-0", {"data": b"\xff", "ok": "fine"})]


def test_other_group_errors_propagate(redis):
    redis.xgroup_create.side_effect = Exception("NOPERM")
    with pytest.raises(Exception, match="NOPERM"):
        asyncio.run(ensure_consumer_group(redis, "detections:cam-test", "tracker-workers"))


# ── Configuration ─────────────────────────────────────────────────────────────

def test_build_config_from_settings():
    settings = Settings(camera_ids="cam-a, cam-b,", max_disappeared=3, dist_threshold=12.5)
    config = build_config(settings)
    assert config.camera_ids == ["cam-a", "cam-b"]
    assert config.max_disappeared == 3
    assert config.dist_threshold == 12.5


def test_build_pipelines_one_per_camera():
    pipelines = build_pipelines(TrackerConfig(camera_ids=["cam-a", "cam-b"]))
    assert len(pipelines) == 2
    assert pipelines[0]._adapter.tracker is not pipelines[1]._adapter.tracker


def test_negative_tunables_fail_at_startup():
    with pytest.raises(InvalidConfiguration):
        build_pipelines(TrackerConfig(camera_ids=["cam-a"], max_disappeared=-1))


def test_default_consumer_group():
    assert TrackerConfig().consumer_group == GROUP_TRACKER == "tracker-workers"


def test_service_exits_on_invalid_configuration():
    bad = TrackerConfig(camera_ids=["cam-a"], dist_threshold=-1.0)

    with patch("tracker.main.configure_logging"), patch(
        "tracker.main.build_config", return_value=bad
    ), capture_logs() as logs, pytest.raises(SystemExit) as exc_info:
        asyncio.run(run())

    assert exc_info.value.code == 2
    assert [e["event"] for e in logs] == ["invalid_configuration"]
    assert logs[0]["log_level"] == "error"
