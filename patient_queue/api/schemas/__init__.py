"""API request/response schemas."""

from .queue import QueueSnapshotResponse, TrackingStoppedResponse

__all__ = ["QueueSnapshotResponse", "TrackingStoppedResponse"]
