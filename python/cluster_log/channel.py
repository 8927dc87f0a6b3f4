# Forwarding channel: subordinate -> primary, one direction, best effort.
#
# Envelopes travel as JSON text over a multiprocessing queue. The queue keeps
# per-sender order; there is no acknowledgment, retry or buffering beyond what
# the queue itself does, so anything sent while the primary is gone is lost.

from __future__ import annotations
import queue as _queue
import threading
from typing import Any, Callable, Optional

from . import metrics
from .errors import MalformedEventError
from .events import Envelope, decode
from .logging import _Diagnostics

_SENTINEL = None

class QueueChannel:
    def __init__(self, q: Any) -> None:
        self.queue = q

    def send(self, text: str) -> None:
        """Hand ``text`` to the queue without waiting. Raises if the queue is closed or full."""
        self.queue.put_nowait(text)

    def receive(self, timeout: Optional[float] = None) -> Optional[str]:
        """Block until the next envelope (or the stop sentinel, returned as None)."""
        return self.queue.get(timeout=timeout)

    def close_receiving(self) -> None:
        self.queue.put(_SENTINEL)

    @property
    def closed(self) -> bool:
        return bool(getattr(self.queue, "_closed", False))

class ChannelListener:
    """Receive loop for the primary, run on its own daemon thread.

    Each decoded envelope is passed to ``dispatch``. Frames that cannot be
    read or decoded are dropped and counted in ``malformed``; exceptions from
    ``dispatch`` are counted in ``dispatch_errors``. The first of each kind is
    reported on stderr. Only the stop sentinel or a closed queue ends the loop.
    """

    def __init__(self, channel: QueueChannel, dispatch: Callable[[Envelope], Any], service: str = "") -> None:
        self.channel = channel
        self.dispatch = dispatch
        self.service = service
        self.malformed = 0
        self.dispatch_errors = 0
        self._bad_frame = _Diagnostics("receive loop", "got a malformed frame")
        self._bad_handler = _Diagnostics("message handler", "failed")
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = t = threading.Thread(target=self._monitor, name="cluster-log-listener", daemon=True)
        t.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Let everything already queued drain, then end the loop."""
        if self._thread is None:
            return
        self.channel.close_receiving()
        self._thread.join(timeout)
        self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def handle(self, text: str) -> None:
        try:
            envelope = decode(text)
        except MalformedEventError as e:
            self._malformed(e)
            return
        try:
            self.dispatch(envelope)
        except Exception as e:
            self.dispatch_errors += 1
            metrics.events_dropped("dispatch", service=self.service)
            self._bad_handler.report(e)

    def _malformed(self, err: BaseException) -> None:
        self.malformed += 1
        metrics.events_dropped("malformed", service=self.service)
        self._bad_frame.report(err)

    def _monitor(self) -> None:
        while True:
            try:
                text = self.channel.receive()
            except (EOFError, OSError):
                # queue torn down underneath us
                return
            except _queue.Empty:
                continue
            except Exception as e:
                if self.channel.closed:
                    return
                # torn or foreign frame, e.g. a worker killed mid-write
                self._malformed(e)
                continue
            if text is _SENTINEL:
                return
            self.handle(text)
