"""API modules for 3Commas client."""

from .transport import Transport
from .streaming import StreamingChannelManager, Channel, ConnectionState

__all__ = ["Transport", "StreamingChannelManager", "Channel", "ConnectionState"]
