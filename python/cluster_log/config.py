# Facade configuration. Values can come from init() kwargs or the environment.

from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigError
from .events import Level

STREAMS = ("stdout", "stderr")
DEFAULT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}

@dataclass(frozen=True)
class Config:
    service_name: str = "cluster-log"
    level: Level = Level.DEBUG
    stream: str = "stdout"
    color: bool = False
    time_format: str = DEFAULT_TIME_FORMAT
    role: Optional[str] = None

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "level", Level.parse(self.level))
        except ValueError as e:
            raise ConfigError(str(e)) from None
        if self.stream not in STREAMS:
            raise ConfigError(f"unsupported log stream {self.stream!r}, expected one of {STREAMS}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "Config":
        """Build a Config from ``CLUSTER_LOG_*`` variables; keyword overrides win."""
        env = os.environ if environ is None else environ
        values = {}
        if "CLUSTER_LOG_SERVICE" in env:
            values["service_name"] = env["CLUSTER_LOG_SERVICE"]
        if "CLUSTER_LOG_LEVEL" in env:
            values["level"] = env["CLUSTER_LOG_LEVEL"].strip().lower()
        if "CLUSTER_LOG_STREAM" in env:
            values["stream"] = env["CLUSTER_LOG_STREAM"].strip().lower()
        if "CLUSTER_LOG_COLOR" in env:
            values["color"] = _parse_bool("CLUSTER_LOG_COLOR", env["CLUSTER_LOG_COLOR"])
        if env.get("CLUSTER_LOG_ROLE"):
            values["role"] = env["CLUSTER_LOG_ROLE"].strip().lower()
        values.update(overrides)
        return cls(**values)

    def enabled_for(self, level: Level) -> bool:
        return level.severity <= self.level.severity

def _parse_bool(name: str, raw: str) -> bool:
    v = raw.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")
