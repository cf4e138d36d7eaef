"""Pydantic v2 schemas for the tracking Redis Streams messages.

Stream naming convention: {domain}:{camera_id}
  detections:cam-01  per-frame detection lists from the upstream detector
  tracks:cam-01      registry snapshots published after every update

Every stream entry carries a single field, ``data``, holding the JSON
serialization of one of the root models below.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, RootModel, StrictInt


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


# ── Detector → Tracker ────────────────────────────────────────────────────────

class DetectionRecord(_FrozenModel):
    """One detected object in a frame.

    Only ``bbox`` is required; any other fields the detector attaches
    (class, score, ...) are ignored.
    """

    bbox: tuple[StrictInt, StrictInt, StrictInt, StrictInt] = Field(
        description="Pixel bounding box [x1, y1, x2, y2]"
    )


class DetectionFrame(RootModel[list[DetectionRecord]]):
    """All detections for a single frame, in detector order.

    Stream: detections:{camera_id}
    """

    model_config = ConfigDict(frozen=True)

    def bboxes(self) -> list[tuple[int, int, int, int]]:
        return [record.bbox for record in self.root]


# ── Tracker → downstream ──────────────────────────────────────────────────────

class TrackingSnapshot(RootModel[dict[str, tuple[int, int]]]):
    """Live tracks after one update: decimal track id → [cx, cy] centroid.

    Stream: tracks:{camera_id}
    """

    model_config = ConfigDict(frozen=True)
