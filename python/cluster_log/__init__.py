__all__ = [
    "init", "shutdown", "LogContext", "Config", "Level", "LogEvent", "Envelope",
    "Role", "detect_role", "MasterAggregator", "QueueChannel", "ChannelListener",
    "Supervisor", "ClusterLogError", "ConfigError", "MalformedEventError",
]
__version__ = "0.1.0"

from .errors import ClusterLogError, ConfigError, MalformedEventError
from .events import Envelope, Level, LogEvent
from .config import Config
from .role import Role, detect_role
from .aggregator import MasterAggregator
from .channel import ChannelListener, QueueChannel
from .bootstrap import LogContext, init, shutdown
from .supervisor import Supervisor
