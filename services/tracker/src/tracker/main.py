"""Tracker service entry point."""
from __future__ import annotations

import asyncio
import signal
import sys

from track_shared.logging import configure_logging, get_logger
from track_shared.redis_client import close_redis, get_redis
from track_shared.settings import settings

from tracker.centroid_tracker import CentroidTracker
from tracker.config import TrackerConfig, build_config
from tracker.errors import InvalidConfiguration
from tracker.frame_adapter import FrameAdapter
from tracker.pipeline import TrackingPipeline

log = get_logger(__name__)


def build_pipelines(config: TrackerConfig) -> list[TrackingPipeline]:
    """One independent tracker and pipeline per camera.

    Raises:
        InvalidConfiguration: the tracker tunables are out of range.
    """
    return [
        TrackingPipeline(
            cam_id,
            config,
            FrameAdapter(CentroidTracker(config.max_disappeared, config.dist_threshold)),
        )
        for cam_id in config.camera_ids
    ]


async def run() -> None:
    configure_logging(settings.log_format, settings.log_level, service="tracker")
    config = build_config(settings)

    try:
        pipelines = build_pipelines(config)
    except InvalidConfiguration as exc:
        log.error("invalid_configuration", error=str(exc))
        sys.exit(2)

    log.info(
        "tracker_service_starting",
        cameras=config.camera_ids,
        max_disappeared=config.max_disappeared,
        dist_threshold=config.dist_threshold,
    )

    redis = get_redis(config.redis_url)

    loop = asyncio.get_running_loop()

    def _shutdown(sig, frame):
        log.info("shutdown_signal_received", signal=sig)
        for task in asyncio.all_tasks(loop):
            task.cancel()

    signal.signal(signal.SIGTERM, _shutdown)
    signal.signal(signal.SIGINT, _shutdown)

    try:
        await asyncio.gather(*[p.run(redis) for p in pipelines])
    except asyncio.CancelledError:
        pass
    finally:
        await redis.aclose()
        await close_redis()
        log.info("tracker_service_stopped")


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
