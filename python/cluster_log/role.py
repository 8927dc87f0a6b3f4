# Primary/subordinate role detection.

from __future__ import annotations
import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Union

from .errors import ConfigError

WORKER_ID_ENV = "CLUSTER_LOG_WORKER_ID"

class Role(str, Enum):
    PRIMARY = "primary"
    SUBORDINATE = "subordinate"

_ALIASES = {
    "primary": Role.PRIMARY, "master": Role.PRIMARY,
    "subordinate": Role.SUBORDINATE, "worker": Role.SUBORDINATE,
}

@dataclass(frozen=True)
class RoleInfo:
    role: Role
    worker_id: Optional[Union[int, str]] = None

    @property
    def is_primary(self) -> bool:
        return self.role is Role.PRIMARY

def _worker_id(raw: str) -> Union[int, str]:
    raw = raw.strip()
    return int(raw) if raw.isdigit() else raw

def detect_role(explicit: Optional[Union[Role, str]] = None,
                environ: Optional[Mapping[str, str]] = None) -> RoleInfo:
    """Work out which side of the topology this process is on.

    An explicit role wins; otherwise a process started with
    ``CLUSTER_LOG_WORKER_ID`` in its environment is a subordinate. Anything
    else is the primary.
    """
    env = os.environ if environ is None else environ
    raw_id = env.get(WORKER_ID_ENV, "")
    if explicit is not None:
        role = explicit if isinstance(explicit, Role) else _ALIASES.get(str(explicit).strip().lower())
        if role is None:
            raise ConfigError(f"unknown process role {explicit!r}")
    else:
        role = Role.SUBORDINATE if raw_id.strip() else Role.PRIMARY
    if role is Role.PRIMARY:
        return RoleInfo(role)
    return RoleInfo(role, _worker_id(raw_id) if raw_id.strip() else os.getpid())
