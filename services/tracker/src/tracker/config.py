"""Tracker service configuration."""
from __future__ import annotations

import os
from dataclasses import dataclass, field

from track_shared.events.publisher import GROUP_TRACKER


@dataclass(frozen=True)
class TrackerConfig:
    """Configuration for the tracking pipelines. Read once at startup."""

    camera_ids: list[str] = field(default_factory=list)
    redis_url: str = "redis://localhost:6379/0"

    # Tracker tunables (validated when the tracker is built)
    max_disappeared: int = 50
    dist_threshold: float = 50.0

    # Stream settings
    consumer_group: str = GROUP_TRACKER
    consumer_name: str = "tracker-0"
    read_batch: int = 10
    block_ms: int = 500
    stream_maxlen: int = 1000

    # Throughput logging interval (frames)
    log_interval: int = 100


def build_config(settings) -> TrackerConfig:
    """Build TrackerConfig from shared Settings."""
    return TrackerConfig(
        camera_ids=settings.camera_id_list,
        redis_url=settings.redis_url,
        max_disappeared=settings.max_disappeared,
        dist_threshold=settings.dist_threshold,
        consumer_name=os.environ.get("TRACKER_CONSUMER_NAME", "tracker-0"),
        stream_maxlen=settings.stream_maxlen,
    )
