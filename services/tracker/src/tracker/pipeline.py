"""Tracking pipeline: consume detections → update tracker → publish tracks.

For each camera:
1. XREADGROUP from `detections:{camera_id}` (consumer group: tracker-workers)
2. Decode the detection list and run one CentroidTracker update
3. Publish the full registry snapshot to `tracks:{camera_id}`
4. XACK the processed message

Messages are handled strictly one at a time in stream order. A frame that
fails to decode or validate is logged, acknowledged and dropped without
touching the registry.
"""
from __future__ import annotations

import time

import redis.asyncio as aioredis

from track_shared.events.publisher import (
    ack,
    detections_stream,
    ensure_consumer_group,
    publish,
    read_group,
    tracks_stream,
)
from track_shared.logging import get_logger

from tracker.config import TrackerConfig
from tracker.errors import DecodeError, InvalidInput
from tracker.frame_adapter import FrameAdapter

log = get_logger(__name__)


class TrackingPipeline:
    """Runs the tracking loop for a single camera.

    Args:
        camera_id: Camera identifier (used for stream names).
        config: Tracker service configuration.
        adapter: Frame adapter wrapping this camera's tracker.
    """

    def __init__(
        self,
        camera_id: str,
        config: TrackerConfig,
        adapter: FrameAdapter,
    ) -> None:
        self._camera_id = camera_id
        self._cfg = config
        self._adapter = adapter
        self._in_stream = detections_stream(camera_id)
        self._out_stream = tracks_stream(camera_id)
        self._frame_count = 0
        self._dropped_count = 0
        self._t_start = time.monotonic()

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def dropped_count(self) -> int:
        return self._dropped_count

    async def run(self, redis: aioredis.Redis) -> None:
        """Main loop: processes frames until cancelled."""
        await ensure_consumer_group(redis, self._in_stream, self._cfg.consumer_group)

        log.info(
            "tracker_pipeline_starting",
            camera_id=self._camera_id,
            in_stream=self._in_stream,
            out_stream=self._out_stream,
            max_disappeared=self._adapter.tracker.max_disappeared,
            dist_threshold=self._adapter.tracker.dist_threshold,
        )

        while True:
            await self.poll_once(redis)

    async def poll_once(self, redis: aioredis.Redis) -> int:
        """Read one batch and process it in order. Returns the batch size."""
        messages = await read_group(
            redis,
            self._in_stream,
            self._cfg.consumer_group,
            self._cfg.consumer_name,
            count=self._cfg.read_batch,
            block_ms=self._cfg.block_ms,
        )
        for msg_id, msg_data in messages:
            await self._handle_message(redis, msg_id, msg_data)
        return len(messages)

    async def _handle_message(
        self, redis: aioredis.Redis, msg_id: str, msg_data: dict
    ) -> None:
        try:
            await self._process_message(redis, msg_data)
        except DecodeError as exc:
            self._dropped_count += 1
            log.warning(
                "frame_decode_failed",
                camera_id=self._camera_id,
                msg_id=msg_id,
                error=str(exc),
            )
        except InvalidInput as exc:
            self._dropped_count += 1
            log.warning(
                "frame_rejected",
                camera_id=self._camera_id,
                msg_id=msg_id,
                error=str(exc),
            )
        except Exception as exc:
            log.error(
                "tracker_pipeline_error",
                camera_id=self._camera_id,
                msg_id=msg_id,
                error=str(exc),
            )
        # ACK either way so a bad frame is never redelivered
        await ack(redis, self._in_stream, self._cfg.consumer_group, msg_id)

    async def _process_message(self, redis: aioredis.Redis, msg_data: dict) -> None:
        if "data" not in msg_data:
            raise DecodeError("stream entry has no 'data' field")

        snapshot = self._adapter.handle(msg_data["data"])
        self._frame_count += 1

        await publish(redis, self._out_stream, snapshot, maxlen=self._cfg.stream_maxlen)

        log.info(
            "frame_tracked",
            camera_id=self._camera_id,
            tracked_objects=len(snapshot.root),
        )

        if self._frame_count % self._cfg.log_interval == 0:
            elapsed = time.monotonic() - self._t_start
            fps = self._frame_count / elapsed if elapsed > 0 else 0
            log.info(
                "pipeline_throughput",
                camera_id=self._camera_id,
                frames=self._frame_count,
                dropped=self._dropped_count,
                fps=round(fps, 1),
                tracked_objects=len(snapshot.root),
            )
