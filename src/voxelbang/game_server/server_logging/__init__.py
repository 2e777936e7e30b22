"""Logging utilities for the voxel-bang world server."""

from .event_log import EVENT_LOG_FILENAME, EventLogger, EventRecord

__all__ = ["EVENT_LOG_FILENAME", "EventLogger", "EventRecord"]
