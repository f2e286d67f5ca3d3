from .monitor import HeartbeatMonitor
from .node import Node
from .session import Session
from .transport import SendError, TcpTransport

__all__ = ["HeartbeatMonitor", "Node", "Session", "SendError", "TcpTransport"]
