"""Redis Streams publisher and consumer helpers."""
from __future__ import annotations

from pydantic import BaseModel
from redis.asyncio import Redis

# Stream name templates
STREAM_DETECTIONS = "detections:{camera_id}"
STREAM_TRACKS = "tracks:{camera_id}"

# Consumer group names
GROUP_TRACKER = "tracker-workers"


def detections_stream(camera_id: str) -> str:
    return STREAM_DETECTIONS.format(camera_id=camera_id)


def tracks_stream(camera_id: str) -> str:
    return STREAM_TRACKS.format(camera_id=camera_id)


async def publish(
    redis: Redis,
    stream: str,
    event: BaseModel,
    maxlen: int = 1000,
) -> str:
    """Serialize a Pydantic model and XADD it to a Redis Stream.

    Args:
        redis: Async Redis client.
        stream: Stream name.
        event: Any Pydantic model (root models included).
        maxlen: Approximate max stream length (MAXLEN ~).

    Returns:
        The Redis message ID of the newly added entry.
    """
    return await publish_raw(redis, stream, event.model_dump_json(), maxlen=maxlen)


async def publish_raw(
    redis: Redis,
    stream: str,
    data: str,
    maxlen: int = 1000,
) -> str:
    """XADD an already-serialized JSON payload under the ``data`` field."""
    msg_id = await redis.xadd(stream, {"data": data}, maxlen=maxlen, approximate=True)
    return msg_id.decode() if isinstance(msg_id, bytes) else msg_id


async def ensure_consumer_group(
    redis: Redis,
    stream: str,
    group: str,
) -> None:
    """Create a consumer group if it does not exist, creating the stream too."""
    try:
        await redis.xgroup_create(stream, group, id="0", mkstream=True)
    except Exception as exc:
        # BUSYGROUP means the group already exists
        if "BUSYGROUP" not in str(exc):
            raise


def _text(value):
    """Decode UTF-8 bytes; bytes that are not valid UTF-8 are passed through
    unchanged so the consumer can reject that one entry."""
    if isinstance(value, bytes):
        try:
            return value.decode()
        except UnicodeDecodeError:
            return value
    return value


async def read_group(
    redis: Redis,
    stream: str,
    group: str,
    consumer: str,
    count: int = 10,
    block_ms: int = 1000,
) -> list[tuple[str, dict]]:
    """Read new messages for this consumer, oldest first.

    Returns a list of (message_id, data_dict) tuples. Keys and values are
    decoded to str where they are valid UTF-8 and left as bytes otherwise.
    """
    results = await redis.xreadgroup(
        groupname=group,
        consumername=consumer,
        streams={stream: ">"},
        count=count,
        block=block_ms,
    )
    if not results:
        return []
    messages = []
    for _stream, entries in results:
        for msg_id, fields in entries:
            msg_id_str = msg_id.decode() if isinstance(msg_id, bytes) else msg_id
            decoded = {_text(k): _text(v) for k, v in fields.items()}
            messages.append((msg_id_str, decoded))
    return messages


async def ack(redis: Redis, stream: str, group: str, *msg_ids: str) -> None:
    """Acknowledge processed messages."""
    await redis.xack(stream, group, *msg_ids)
