# LogEvent and the tagged envelope that carries it between processes.

from __future__ import annotations
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Union

from .errors import MalformedEventError

LOG_KIND = "log"

class Level(str, Enum):
    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    DEBUG = "debug"

    @property
    def tag(self) -> str:
        return self.value.upper()

    @property
    def severity(self) -> int:
        # lower is more severe
        return _SEVERITY[self]

    @classmethod
    def parse(cls, value: Any) -> "Level":
        if isinstance(value, Level):
            return value
        try:
            return cls(value)
        except ValueError:
            raise MalformedEventError(f"unknown log level: {value!r}") from None

_SEVERITY = {Level.ERROR: 0, Level.WARN: 1, Level.INFO: 2, Level.DEBUG: 3}

WorkerId = Union[int, str]

@dataclass(frozen=True)
class LogEvent:
    """A single log call. ``source_id`` is None for events raised in the primary."""
    level: Level
    message: str
    source_id: Optional[WorkerId] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "level", Level.parse(self.level))
        if not isinstance(self.message, str):
            raise TypeError(f"log message must be str, not {type(self.message).__name__}")

    def to_payload(self) -> dict[str, str]:
        return {"level": self.level.value, "message": self.message}

@dataclass(frozen=True)
class Envelope:
    """Discriminated wrapper for everything a worker sends to the primary.

    Only ``kind == "log"`` belongs to the log aggregator; other kinds are
    control traffic for whoever owns the worker.
    """
    kind: str
    sender: Optional[WorkerId]
    payload: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_log(self) -> bool:
        return self.kind == LOG_KIND

    @classmethod
    def for_event(cls, event: LogEvent) -> "Envelope":
        return cls(LOG_KIND, event.source_id, event.to_payload())

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "Envelope":
        if not isinstance(raw, Mapping):
            raise MalformedEventError(f"envelope must be a mapping, not {type(raw).__name__}")
        kind = raw.get("kind")
        if not isinstance(kind, str) or not kind:
            raise MalformedEventError("envelope is missing its kind")
        payload = raw.get("payload", {})
        if not isinstance(payload, Mapping):
            raise MalformedEventError("envelope payload must be a mapping")
        return cls(kind, raw.get("sender"), dict(payload))

    def to_mapping(self) -> dict[str, Any]:
        return {"kind": self.kind, "sender": self.sender, "payload": dict(self.payload)}

    def to_event(self, source_id: Optional[WorkerId] = None) -> LogEvent:
        """Rebuild the LogEvent of a ``log`` envelope; raises MalformedEventError otherwise."""
        if not self.is_log:
            raise MalformedEventError(f"not a log envelope: {self.kind!r}")
        message = self.payload.get("message")
        if not isinstance(message, str):
            raise MalformedEventError("log envelope without a text message")
        sid = self.sender if source_id is None else source_id
        return LogEvent(Level.parse(self.payload.get("level")), message, sid)

def encode(envelope: Envelope) -> str:
    return json.dumps(envelope.to_mapping(), separators=(",", ":"), ensure_ascii=False)

def decode(text: Union[str, bytes]) -> Envelope:
    try:
        raw = json.loads(text)
    except (TypeError, ValueError) as e:
        raise MalformedEventError(f"undecodable envelope: {e}") from None
    return Envelope.from_mapping(raw)
