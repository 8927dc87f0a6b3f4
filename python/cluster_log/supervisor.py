# Worker process management for the primary: spawn subordinates wired to the
# forwarding channel and run the receive loop that feeds the aggregator.

from __future__ import annotations
import multiprocessing, os, threading, time
from typing import Any, Callable, Optional

from .bootstrap import LogContext
from .channel import ChannelListener, QueueChannel
from .config import Config
from .errors import ConfigError
from .events import Envelope, WorkerId, encode
from .role import WORKER_ID_ENV, Role

EXITED_KIND = "cluster_log.exited"

MessageHandler = Callable[[WorkerId, Envelope], Any]

FLUSH_TIMEOUT = 5.0

def _flush_queue(q: Any, timeout: float) -> None:
    """Give the feeder thread ``timeout`` seconds to empty the buffer, then abandon it.

    A feeder stuck on a full pipe (nobody reading in the primary) must not
    hold this process in the atexit join.
    """
    q.close()
    flusher = threading.Thread(target=q.join_thread, daemon=True)
    flusher.start()
    flusher.join(timeout)
    if flusher.is_alive():
        q.cancel_join_thread()

def _worker_main(q: Any, cfg: Config, target: Callable[..., Any], args: tuple,
                 flush_timeout: float = FLUSH_TIMEOUT) -> None:
    os.environ[WORKER_ID_ENV] = str(os.getpid())
    ctx = LogContext(cfg, role=Role.SUBORDINATE, channel=QueueChannel(q))
    try:
        target(ctx, *args)
    finally:
        _flush_queue(q, flush_timeout)

class Supervisor:
    """Spawns subordinate processes and aggregates their logs in the primary.

    Non-log envelopes from workers go to ``on_message(worker_id, envelope)``.
    """

    def __init__(self, ctx: LogContext, on_message: Optional[MessageHandler] = None,
                 start_method: Optional[str] = None, flush_timeout: float = FLUSH_TIMEOUT) -> None:
        if not ctx.is_primary:
            raise ConfigError("only the primary process can supervise workers")
        self.ctx = ctx
        self.on_message = on_message
        self.flush_timeout = flush_timeout
        self._mp = multiprocessing.get_context(start_method)
        q = self._mp.Queue()
        # the primary only queues exit markers and the stop sentinel for itself
        q.cancel_join_thread()
        self.channel = QueueChannel(q)
        self.listener = ChannelListener(self.channel, self._dispatch, service=ctx.config.service_name)
        self._procs: dict[int, Any] = {}
        # held from fork until the new pid is registered
        self._spawn_lock = threading.Lock()

    def __enter__(self) -> "Supervisor":
        self.listener.start()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.stop()

    @property
    def workers(self) -> list[int]:
        return list(self._procs)

    def spawn(self, target: Callable[..., Any], *args: Any, label: Optional[str] = None):
        """Start ``target(ctx, *args)`` in a new worker process and return the Process."""
        p = self._mp.Process(target=_worker_main,
                             args=(self.channel.queue, self.ctx.config, target, args, self.flush_timeout))
        with self._spawn_lock:
            p.start()
            self._procs[p.pid] = p
            self.ctx.aggregator.register_worker(p.pid, label)
        self.listener.start()
        return p

    def join(self, timeout: Optional[float] = None) -> list[int]:
        """Wait up to ``timeout`` seconds in total for workers to exit; returns the pids that did."""
        deadline = None if timeout is None else time.monotonic() + timeout
        done = []
        for pid, p in list(self._procs.items()):
            p.join(None if deadline is None else max(0.0, deadline - time.monotonic()))
            if p.exitcode is None:
                continue
            done.append(pid)
            self._procs.pop(pid, None)
            # queued behind everything the worker sent before it exited
            self.channel.send(encode(Envelope(EXITED_KIND, pid)))
        return done

    def kill(self, pid: int) -> bool:
        p = self._procs.get(pid)
        if p is None:
            return False
        p.kill()
        return True

    def stop(self, timeout: Optional[float] = None) -> None:
        """Join every worker, then drain the channel and stop the receive loop."""
        self.join(timeout)
        self.listener.stop(timeout)

    def _dispatch(self, envelope: Envelope) -> None:
        # wait out a spawn that has forked but not yet registered its pid
        with self._spawn_lock:
            pass
        if envelope.kind == EXITED_KIND:
            self.ctx.aggregator.forget_worker(envelope.sender)
            return
        if self.ctx.aggregator.handle_envelope(envelope):
            return
        if not envelope.is_log and self.on_message is not None:
            self.on_message(envelope.sender, envelope)
