# Log emitters: the sink writer used by the primary, the forwarder used by
# subordinates, and the no-op logger in place before initialization.

from __future__ import annotations
import sys, threading, time
from typing import Any, Callable, Optional, Protocol, TextIO

from . import metrics
from .config import Config
from .events import Envelope, Level, LogEvent, WorkerId, encode

_COLORS = {Level.ERROR: "\x1b[91m", Level.WARN: "\x1b[93m", Level.INFO: "\x1b[92m", Level.DEBUG: "\x1b[96m"}
_RESET = "\x1b[0m"

class _GlobalLogger(Protocol):
    def log(self, level: Level, msg: str, origin: str = ...) -> None: ...
    def debug(self, msg: str) -> None: ...
    def info(self, msg: str) -> None: ...
    def warn(self, msg: str) -> None: ...
    def error(self, msg: str) -> None: ...

class _LevelMethods:
    def log(self, level: Level, msg: str, origin: str = "local") -> None:
        raise NotImplementedError
    def debug(self, msg: str) -> None: self.log(Level.DEBUG, msg)
    def info(self, msg: str) -> None: self.log(Level.INFO, msg)
    def warn(self, msg: str) -> None: self.log(Level.WARN, msg)
    def error(self, msg: str) -> None: self.log(Level.ERROR, msg)

class _NopLogger(_LevelMethods):
    def log(self, level: Level, msg: str, origin: str = "local") -> None:
        LogEvent(level, msg)

class _Diagnostics:
    """Reports the first failure of a logger on the interpreter's original stderr."""

    def __init__(self, what: str, problem: str = "unavailable") -> None:
        self.what = what
        self.problem = problem
        self.reported = False

    def report(self, err: BaseException) -> None:
        if self.reported:
            return
        self.reported = True
        try:
            print(f"cluster_log: {self.what} {self.problem}, dropping log events ({err!r})",
                  file=sys.__stderr__, flush=True)
        except Exception:
            pass

def format_line(event: LogEvent, cfg: Config, now: Optional[float] = None) -> str:
    ts = time.strftime(cfg.time_format, time.localtime(time.time() if now is None else now))
    tag = event.level.tag
    if cfg.color:
        tag = f"{_COLORS[event.level]}{tag}{_RESET}"
    return f"[{ts}] [{tag}] - {event.message}"

class _ConsoleLogger(_LevelMethods):
    """The one sink of the topology. Only the primary builds one."""

    def __init__(self, stream: TextIO, cfg: Config) -> None:
        self.stream = stream
        self.cfg = cfg
        self._lock = threading.Lock()
        self._diag = _Diagnostics("log sink")

    def log(self, level: Level, msg: str, origin: str = "local") -> None:
        self.write(LogEvent(level, msg), origin)

    def write(self, event: LogEvent, origin: str = "local") -> None:
        if not self.cfg.enabled_for(event.level):
            return
        line = format_line(event, self.cfg) + "\n"
        try:
            with self._lock:
                self.stream.write(line)
                self.stream.flush()
        except Exception as e:
            metrics.events_dropped("sink", service=self.cfg.service_name)
            self._diag.report(e)
            return
        metrics.events_written(event.level.value, service=self.cfg.service_name, origin=origin)

    def flush(self) -> None:
        try:
            with self._lock:
                self.stream.flush()
        except Exception as e:
            self._diag.report(e)

class _ForwardingLogger(_LevelMethods):
    """Subordinate-side logger: every call becomes a ``log`` envelope on the channel.

    Delivery is fire-and-forget. A send that fails is dropped after a single
    diagnostic; nothing is written to this process's own stdout or stderr.
    """

    def __init__(self, send: Optional[Callable[[str], Any]], worker_id: WorkerId, service: str = "") -> None:
        self._send = send
        self.worker_id = worker_id
        self.service = service
        self._diag = _Diagnostics("forwarding channel")

    def log(self, level: Level, msg: str, origin: str = "local") -> None:
        event = LogEvent(level, msg, self.worker_id)
        if self._send is None:
            metrics.events_dropped("no_channel", service=self.service)
            return
        try:
            self._send(encode(Envelope.for_event(event)))
        except Exception as e:
            metrics.events_dropped("channel", service=self.service)
            self._diag.report(e)
            return
        metrics.events_forwarded(event.level.value, service=self.service)

def open_stream(name: str) -> TextIO:
    stream = getattr(sys, name, None)
    if stream is None:
        raise OSError(f"sys.{name} is not available")
    return stream
