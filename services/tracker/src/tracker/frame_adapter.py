"""Frame adapter: wire payload → tracker update → wire payload.

Decoding goes through the pydantic schemas in track_shared; a payload that
does not validate never reaches the tracker.
"""
from __future__ import annotations

import threading

from pydantic import ValidationError

from track_shared.events.schemas import DetectionFrame, TrackingSnapshot
from track_shared.logging import get_logger

from tracker.centroid_tracker import Centroid, CentroidTracker
from tracker.errors import DecodeError

log = get_logger(__name__)


def decode_detections(payload: str | bytes) -> list[tuple[int, int, int, int]]:
    """Parse a JSON detection payload into bounding boxes, in payload order.

    Raises:
        DecodeError: invalid UTF-8 or JSON, not an array, a record without ``bbox``,
            or a ``bbox`` that is not exactly 4 integers.
    """
    try:
        frame = DetectionFrame.model_validate_json(payload)
    except ValidationError as exc:
        raise DecodeError(f"malformed detection payload: {exc.error_count()} error(s)") from exc
    except UnicodeDecodeError as exc:
        raise DecodeError("detection payload is not valid UTF-8") from exc
    return frame.bboxes()


def encode_snapshot(snapshot: dict[int, Centroid]) -> TrackingSnapshot:
    """Registry snapshot → outbound schema keyed by decimal track id."""
    return TrackingSnapshot({str(track_id): pos for track_id, pos in snapshot.items()})


class FrameAdapter:
    """Drives one CentroidTracker from raw frame payloads.

    Exactly one tracker update per handled frame. Calls are serialized with
    a lock so the tracker never sees two concurrent updates.
    """

    def __init__(self, tracker: CentroidTracker) -> None:
        self._tracker = tracker
        self._lock = threading.Lock()

    @property
    def tracker(self) -> CentroidTracker:
        return self._tracker

    def handle(self, payload: str | bytes) -> TrackingSnapshot:
        """Decode one frame, update the tracker and encode the result.

        Raises:
            DecodeError: the payload is malformed; the tracker is not called.
            InvalidInput: a detection is invalid; the registry is unchanged.
        """
        with self._lock:
            boxes = decode_detections(payload)
            snapshot = self._tracker.update(boxes)
        return encode_snapshot(snapshot)
