"""Tracker error taxonomy.

All three are ValueErrors: they describe bad values coming from outside the
tracker (tunables, detections, wire payloads), never an internal fault.
"""
from __future__ import annotations


class TrackingError(ValueError):
    """Base class for tracker failures."""


class InvalidConfiguration(TrackingError):
    """A tunable is out of range. Raised at construction, fatal at startup."""


class InvalidInput(TrackingError):
    """A detection in the frame is malformed. The whole update is rejected."""


class DecodeError(TrackingError):
    """An inbound payload could not be parsed into detections."""
