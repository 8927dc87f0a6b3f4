# Exception types raised by the facade.

class ClusterLogError(Exception):
    """Base class for cluster_log errors."""

class ConfigError(ClusterLogError):
    """Invalid configuration, or the sink could not be created."""

class MalformedEventError(ClusterLogError, ValueError):
    """An event or envelope that does not follow the forwarding protocol."""
