"""Centroid-based multi-object tracker.

Keeps a registry of live tracks (id → centroid) and updates it once per
frame from that frame's bounding boxes:

  no detections   → every track misses a frame
  empty registry  → every detection becomes a new track
  otherwise       → match tracks to detections by centroid distance,
                    tracks left over miss a frame, detections left over
                    become new tracks

A track that misses more than ``max_disappeared`` consecutive frames is
retired in the same update. Ids are never reused.
"""
from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import NamedTuple

import numpy as np

from track_shared.logging import get_logger

from tracker.errors import InvalidConfiguration, InvalidInput
from tracker.matching import GreedyMatcher, MatchingStrategy

log = get_logger(__name__)

Centroid = tuple[int, int]

# Coordinates must stay exactly representable as float64 for the distance matrix
COORD_LIMIT = 2**53


def _half(value: int) -> int:
    """Integer halving that truncates toward zero (not floor) for negatives."""
    q = abs(value) // 2
    return q if value >= 0 else -q


class BoundingBox(NamedTuple):
    x1: int
    y1: int
    x2: int
    y2: int

    def centroid(self) -> Centroid:
        return _half(self.x1 + self.x2), _half(self.y1 + self.y2)


def _is_int(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


def to_bounding_box(raw: Sequence[int], index: int = 0) -> BoundingBox:
    """Validate one raw [x1, y1, x2, y2] detection.

    Raises:
        InvalidInput: wrong length, non-integer or out-of-range coordinates,
            or x1 > x2 / y1 > y2.
    """
    if isinstance(raw, (str, bytes)) or not isinstance(raw, (Sequence, np.ndarray)):
        raise InvalidInput(f"detection {index}: expected [x1, y1, x2, y2], got {raw!r}")
    if len(raw) != 4:
        raise InvalidInput(f"detection {index}: expected 4 coordinates, got {len(raw)}")
    if not all(_is_int(v) for v in raw):
        raise InvalidInput(f"detection {index}: coordinates must be integers, got {list(raw)}")
    box = BoundingBox(*(int(v) for v in raw))
    if any(abs(v) > COORD_LIMIT for v in box):
        raise InvalidInput(
            f"detection {index}: coordinates out of range (|v| <= 2**53), got {list(box)}"
        )
    if box.x1 > box.x2 or box.y1 > box.y2:
        raise InvalidInput(
            f"detection {index}: inverted box {list(box)} (need x1 <= x2 and y1 <= y2)"
        )
    return box


@dataclass
class Registry:
    """Live tracking state: two parallel maps with identical key sets.

    Owned by exactly one CentroidTracker; mutated only through update().
    """

    positions: dict[int, Centroid] = field(default_factory=dict)
    disappeared: dict[int, int] = field(default_factory=dict)
    next_id: int = 0

    def __len__(self) -> int:
        return len(self.positions)

    def __contains__(self, track_id: int) -> bool:
        return track_id in self.positions

    def ids(self) -> list[int]:
        """Track ids in matching order (ascending)."""
        return sorted(self.positions)

    def register(self, centroid: Centroid) -> int:
        track_id = self.next_id
        self.positions[track_id] = centroid
        self.disappeared[track_id] = 0
        self.next_id += 1
        return track_id

    def deregister(self, track_id: int) -> None:
        del self.positions[track_id]
        del self.disappeared[track_id]

    def snapshot(self) -> dict[int, Centroid]:
        """Copy of id → position, ascending id order."""
        return {tid: self.positions[tid] for tid in self.ids()}


class CentroidTracker:
    """Greedy nearest-centroid tracker.

    Args:
        max_disappeared: Consecutive missed frames tolerated before a track
            is retired (retired when the count exceeds this value).
        dist_threshold: Maximum centroid distance for a track to claim a detection.
        registry: State to operate on. A fresh one is created when omitted.
        matcher: Assignment strategy; defaults to GreedyMatcher.

    Not thread-safe: callers must serialize update() calls.
    """

    def __init__(
        self,
        max_disappeared: int = 50,
        dist_threshold: float = 50.0,
        registry: Registry | None = None,
        matcher: MatchingStrategy | None = None,
    ) -> None:
        if not _is_int(max_disappeared) or max_disappeared < 0:
            raise InvalidConfiguration(
                f"max_disappeared must be a non-negative integer, got {max_disappeared!r}"
            )
        if (
            isinstance(dist_threshold, bool)
            or not isinstance(dist_threshold, (int, float))
            or math.isnan(dist_threshold)
            or dist_threshold < 0
        ):
            raise InvalidConfiguration(
                f"dist_threshold must be a non-negative number, got {dist_threshold!r}"
            )
        self._max_disappeared = int(max_disappeared)
        self._dist_threshold = float(dist_threshold)
        self._registry = registry if registry is not None else Registry()
        self._matcher = matcher if matcher is not None else GreedyMatcher()

    @property
    def max_disappeared(self) -> int:
        return self._max_disappeared

    @property
    def dist_threshold(self) -> float:
        return self._dist_threshold

    @property
    def registry(self) -> Registry:
        return self._registry

    def update(self, detections: Sequence[Sequence[int]]) -> dict[int, Centroid]:
        """Apply one frame of [x1, y1, x2, y2] detections.

        Returns:
            Snapshot of every live track, id → (cx, cy).

        Raises:
            InvalidInput: any detection is malformed. The registry is untouched.
        """
        boxes = [to_bounding_box(raw, i) for i, raw in enumerate(detections)]
        reg = self._registry

        if not boxes:
            for track_id in reg.ids():
                self._mark_missing(track_id)
            return reg.snapshot()

        centroids = [box.centroid() for box in boxes]

        if not len(reg):
            for centroid in centroids:
                self._register(centroid)
            return reg.snapshot()

        track_ids = reg.ids()
        tracked = np.array([reg.positions[tid] for tid in track_ids], dtype=float)
        incoming = np.array(centroids, dtype=float)
        distances = np.linalg.norm(tracked[:, None, :] - incoming[None, :, :], axis=2)

        assignment = self._matcher.assign(distances, self._dist_threshold)

        for row, col in assignment.matches:
            track_id = track_ids[row]
            reg.positions[track_id] = centroids[col]
            reg.disappeared[track_id] = 0
        for row in assignment.unmatched_rows:
            self._mark_missing(track_ids[row])
        for col in assignment.unmatched_cols:
            self._register(centroids[col])

        return reg.snapshot()

    def _register(self, centroid: Centroid) -> None:
        track_id = self._registry.register(centroid)
        log.debug("track_registered", track_id=track_id, position=centroid)

    def _mark_missing(self, track_id: int) -> None:
        reg = self._registry
        reg.disappeared[track_id] += 1
        if reg.disappeared[track_id] > self._max_disappeared:
            reg.deregister(track_id)
            log.debug("track_retired", track_id=track_id)
