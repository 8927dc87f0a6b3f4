# Primary-side reconstruction of forwarded log events.

from __future__ import annotations
import threading
from typing import Any, Callable, Mapping, Optional, Union

from . import metrics
from .errors import MalformedEventError
from .events import Envelope, Level, WorkerId

Emit = Callable[[Level, str], None]

class MasterAggregator:
    """Writes worker log events to the primary sink with a ``(#<id>) `` prefix.

    Worker identifiers are not assumed to be unique over the primary's
    lifetime: a pid can come back after its worker exits. ``forget_worker``
    drops the registry entry so a reused id gets a fresh prefix.
    """

    def __init__(self, emit: Emit, service: str = "") -> None:
        self._emit = emit
        self.service = service
        self.dropped = 0
        self._prefixes: dict[WorkerId, str] = {}
        self._lock = threading.Lock()

    def register_worker(self, worker_id: WorkerId, label: Optional[str] = None) -> str:
        prefix = f"({label}) " if label else _default_prefix(worker_id)
        with self._lock:
            self._prefixes[worker_id] = prefix
        return prefix

    def forget_worker(self, worker_id: WorkerId) -> None:
        with self._lock:
            self._prefixes.pop(worker_id, None)

    def prefix_for(self, worker_id: WorkerId) -> str:
        with self._lock:
            prefix = self._prefixes.get(worker_id)
            if prefix is None:
                prefix = self._prefixes[worker_id] = _default_prefix(worker_id)
        return prefix

    @property
    def workers(self) -> list[WorkerId]:
        with self._lock:
            return list(self._prefixes)

    def on_worker_event(self, worker_id: WorkerId, raw_event: Union[Envelope, Mapping[str, Any]]) -> bool:
        """Claim ``raw_event`` if it is a forwarded log event.

        Returns False for control traffic (any non-``log`` kind) so another
        consumer can take it, and for log events with a bad level or message,
        which are counted in ``dropped`` and never written.
        """
        try:
            envelope = raw_event if isinstance(raw_event, Envelope) else Envelope.from_mapping(raw_event)
        except MalformedEventError:
            return False
        if not envelope.is_log:
            return False
        try:
            event = envelope.to_event(worker_id)
        except MalformedEventError:
            self.dropped += 1
            metrics.events_dropped("malformed", service=self.service)
            return False
        self._emit(event.level, self.prefix_for(worker_id) + event.message)
        return True

    def handle_envelope(self, envelope: Envelope) -> bool:
        """Listener-side entry point: the envelope's own sender is the worker id."""
        if envelope.sender is None:
            if envelope.is_log:
                self.dropped += 1
                metrics.events_dropped("anonymous", service=self.service)
            return False
        return self.on_worker_event(envelope.sender, envelope)

def _default_prefix(worker_id: WorkerId) -> str:
    return f"(#{worker_id}) "
