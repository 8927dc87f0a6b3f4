# OpenTelemetry counters for the forwarding path.
# Without an SDK configured these resolve to no-op instruments.

from __future__ import annotations
from typing import Optional

from opentelemetry import metrics

_meter = metrics.get_meter("cluster_log")

_forwarded = _meter.create_counter(
    "cluster_log.events.forwarded", unit="1",
    description="Log events handed to the forwarding channel by subordinates")
_written = _meter.create_counter(
    "cluster_log.events.written", unit="1",
    description="Log lines written to the primary sink")
_dropped = _meter.create_counter(
    "cluster_log.events.dropped", unit="1",
    description="Log events lost to malformed input or an unavailable sink/channel")

def _attrs(level: Optional[str] = None, **extra: str) -> dict[str, str]:
    a = {k: v for k, v in extra.items() if v}
    if level:
        a["level"] = level
    return a

def events_forwarded(level: str, service: str = "") -> None:
    _forwarded.add(1, _attrs(level, service=service))

def events_written(level: str, service: str = "", origin: str = "local") -> None:
    _written.add(1, _attrs(level, service=service, origin=origin))

def events_dropped(reason: str, service: str = "") -> None:
    _dropped.add(1, _attrs(service=service, reason=reason))
