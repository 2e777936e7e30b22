"""Server infrastructure for the voxel-bang WebSocket server."""

from .rpc import rpc_success, rpc_error, event_frame, RPCHandler
from .events import EventSink, EventDispatcher
from .connection import Connection

__all__ = [
    "rpc_success",
    "rpc_error",
    "event_frame",
    "RPCHandler",
    "EventSink",
    "EventDispatcher",
    "Connection",
]
