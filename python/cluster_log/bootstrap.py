# Process-wide logging context. Build one at start-up and pass it around.

from __future__ import annotations
from typing import Any, Mapping, Optional, Union

from .aggregator import MasterAggregator
from .config import Config
from .errors import ConfigError
from .events import LOG_KIND, Envelope, Level, WorkerId, encode
from .logging import _ConsoleLogger, _ForwardingLogger, _GlobalLogger, _NopLogger, open_stream
from .role import Role, RoleInfo, detect_role

class LogContext:
    """Role-aware logging facade.

    The role is detected once, here, and cannot change afterwards. In the
    primary, log calls are dropped silently until :meth:`initialize` opens the
    sink. In a subordinate every call is forwarded over ``channel`` and
    :meth:`initialize` does nothing.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        role: Optional[Union[Role, str]] = None,
        channel: Any = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.config = config or Config()
        self._role = detect_role(role if role is not None else self.config.role, environ)
        self.channel = channel
        self._sink: Optional[_ConsoleLogger] = None
        self._logger: _GlobalLogger
        if self._role.is_primary:
            self._logger = _NopLogger()
            self._aggregator: Optional[MasterAggregator] = MasterAggregator(
                self._emit_forwarded, service=self.config.service_name)
        else:
            send = channel.send if channel is not None else None
            self._logger = _ForwardingLogger(send, self._role.worker_id, self.config.service_name)
            self._aggregator = None

    # role is read-only
    @property
    def role(self) -> Role:
        return self._role.role

    @property
    def role_info(self) -> RoleInfo:
        return self._role

    @property
    def is_primary(self) -> bool:
        return self._role.is_primary

    @property
    def worker_id(self) -> Optional[WorkerId]:
        return self._role.worker_id

    @property
    def initialized(self) -> bool:
        return self._sink is not None

    @property
    def aggregator(self) -> Optional[MasterAggregator]:
        return self._aggregator

    def initialize(self, stream: Any = None) -> "LogContext":
        """Open the console sink (primary only, idempotent).

        Raises ConfigError if the configured stream cannot be obtained.
        """
        if not self.is_primary or self._sink is not None:
            return self
        if stream is None:
            try:
                stream = open_stream(self.config.stream)
            except OSError as e:
                raise ConfigError(f"cannot open log sink: {e}") from e
        self._sink = _ConsoleLogger(stream, self.config)
        self._logger = self._sink
        return self

    def shutdown(self) -> None:
        """Flush the sink and go back to dropping log calls."""
        if self._sink is not None:
            self._sink.flush()
            self._sink = None
            self._logger = _NopLogger()

    def error(self, msg: str) -> None: self._logger.error(msg)
    def warn(self, msg: str) -> None: self._logger.warn(msg)
    def info(self, msg: str) -> None: self._logger.info(msg)
    def debug(self, msg: str) -> None: self._logger.debug(msg)

    def log(self, level: Union[Level, str], msg: str) -> None:
        self._logger.log(Level.parse(level), msg)

    def on_worker_event(self, worker_id: WorkerId, raw_event: Any) -> bool:
        """Bridge for whoever owns the raw worker channel; False means "not mine"."""
        if self._aggregator is None:
            return False
        return self._aggregator.on_worker_event(worker_id, raw_event)

    def notify(self, kind: str, payload: Optional[Mapping[str, Any]] = None) -> bool:
        """Send a non-log control message to the primary. Returns False if it could not be handed off."""
        if kind == LOG_KIND:
            raise ValueError("use the level methods to forward log events")
        if self.is_primary or self.channel is None:
            return False
        try:
            self.channel.send(encode(Envelope(kind, self.worker_id, dict(payload or {}))))
        except Exception:
            return False
        return True

    def _emit_forwarded(self, level: Level, text: str) -> None:
        self._logger.log(level, text, origin="worker")

def init(stream: Any = None, role: Optional[Union[Role, str]] = None, channel: Any = None,
         **config: Any) -> LogContext:
    """Create and initialize a LogContext.

    Keyword arguments override ``CLUSTER_LOG_*`` environment settings.
    """
    return LogContext(Config.from_env(**config), role=role, channel=channel).initialize(stream)

def shutdown(ctx: LogContext) -> None:
    ctx.shutdown()
