#!/usr/bin/env python3
"""Replay recorded detection frames onto a camera's detection stream.

Each line of the input file is one frame: a JSON array of detection records,
e.g. [{"bbox": [10, 10, 50, 80]}, {"bbox": [200, 40, 260, 120]}]. Blank lines
are skipped. Lines are published verbatim, so malformed frames can be replayed
to exercise the tracker's error path.

Usage:
    python scripts/replay_detections.py frames.jsonl --camera cam-01 --fps 15

    # Print the resulting tracks as they come back:
    python scripts/replay_detections.py frames.jsonl --follow
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from track_shared.events.publisher import detections_stream, publish_raw, tracks_stream
from track_shared.logging import configure_logging, get_logger
from track_shared.redis_client import close_redis, get_redis_ctx
from track_shared.settings import settings

configure_logging(settings.log_format, settings.log_level, service="replay")
log = get_logger(__name__)


def load_frames(path: Path) -> list[str]:
    with open(path) as f:
        return [line.strip() for line in f if line.strip()]


async def replay(path: Path, camera_id: str, fps: float, follow: bool) -> None:
    frames = load_frames(path)
    in_stream = detections_stream(camera_id)
    out_stream = tracks_stream(camera_id)
    interval = 1.0 / fps if fps > 0 else 0.0

    async with get_redis_ctx() as redis:
        latest = await redis.xrevrange(out_stream, count=1)
        last_id = latest[0][0] if latest else "0-0"
        log.info("replay_starting", frames=len(frames), stream=in_stream, fps=fps)
        for seq, frame in enumerate(frames):
            msg_id = await publish_raw(redis, in_stream, frame, maxlen=settings.stream_maxlen)
            log.debug("frame_replayed", frame_seq=seq, msg_id=msg_id)

            if follow:
                results = await redis.xread({out_stream: last_id}, count=1, block=1000)
                for _stream, entries in results or []:
                    for out_id, fields in entries:
                        last_id = out_id
                        print(f"{seq}: {fields.get(b'data', b'').decode()}")

            if interval:
                await asyncio.sleep(interval)

    await close_redis()
    log.info("replay_finished", frames=len(frames))


def main() -> None:
    parser = argparse.ArgumentParser(description="Replay detection frames into Redis")
    parser.add_argument("frames", type=Path, help="JSON-lines file, one frame per line")
    parser.add_argument("--camera", default=None, help="Camera ID (default: first configured)")
    parser.add_argument("--fps", type=float, default=15.0, help="Publish rate (0 = no delay)")
    parser.add_argument(
        "--follow", action="store_true", help="Print the tracks published for each frame"
    )
    args = parser.parse_args()

    if not args.frames.exists():
        print(f"Error: {args.frames} not found.", file=sys.stderr)
        sys.exit(1)

    camera_id = args.camera or settings.camera_id_list[0]
    asyncio.run(replay(args.frames, camera_id, args.fps, args.follow))


if __name__ == "__main__":
    main()
