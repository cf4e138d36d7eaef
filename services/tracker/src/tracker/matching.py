"""Detection-to-track assignment strategies.

A strategy receives the (tracks × detections) Euclidean distance matrix and
the distance threshold and decides which track takes which detection. It
never touches the registry; lifecycle bookkeeping stays in CentroidTracker.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

import numpy as np


@dataclass
class Assignment:
    """Result of matching one frame.

    Indices refer to matrix rows (tracks, ascending id) and columns
    (detections, input order).
    """

    matches: list[tuple[int, int]] = field(default_factory=list)  # (row, col)
    unmatched_rows: list[int] = field(default_factory=list)
    unmatched_cols: list[int] = field(default_factory=list)


class MatchingStrategy(Protocol):
    """Interface for swapping the assignment policy without touching track lifecycle."""

    def assign(self, distances: np.ndarray, threshold: float) -> Assignment:
        ...


class GreedyMatcher:
    """Row-wise greedy nearest-neighbour assignment.

    Rows are visited in order. Each row takes its closest column among those
    not yet consumed (lowest column index on ties). If that distance exceeds
    the threshold, or every column is already consumed, the row is unmatched.
    A consumed column is never reassigned, even when it would be a later
    row's nearest detection.
    """

    def assign(self, distances: np.ndarray, threshold: float) -> Assignment:
        n_rows, n_cols = distances.shape
        consumed = np.zeros(n_cols, dtype=bool)
        result = Assignment()

        for row in range(n_rows):
            if consumed.all():
                result.unmatched_rows.append(row)
                continue
            candidates = np.where(consumed, np.inf, distances[row])
            col = int(np.argmin(candidates))
            if candidates[col] > threshold:
                result.unmatched_rows.append(row)
                continue
            consumed[col] = True
            result.matches.append((row, col))

        result.unmatched_cols = [int(c) for c in np.flatnonzero(~consumed)]
        return result
