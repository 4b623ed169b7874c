"""Coordinator identity.

The owner id written into every lock record. It is generated once per
process from the host name, the process id, the process start time and a
random component, so two instances running at the same time never share an
id, even when a pid is reused or containers share a host name.
"""

from __future__ import annotations

import os
import secrets
import socket
import time
from functools import lru_cache

_PROCESS_START_MS = int(time.time() * 1000)


def generate_instance_id(
    *,
    hostname: str | None = None,
    pid: int | None = None,
    started_ms: int | None = None,
) -> str:
    """Build a fresh identity string ``host:pid-startms-random``."""
    host = hostname if hostname is not None else socket.gethostname()
    pid = pid if pid is not None else os.getpid()
    started_ms = started_ms if started_ms is not None else _PROCESS_START_MS
    return f"{host}:{pid}-{started_ms}-{secrets.token_hex(6)}"


@lru_cache(maxsize=1)
def get_instance_id() -> str:
    """Return this process's identity (generated on first use)."""
    return generate_instance_id()


def _reset_after_fork() -> None:
    global _PROCESS_START_MS
    _PROCESS_START_MS = int(time.time() * 1000)
    get_instance_id.cache_clear()


# A forked worker is a different instance and must not inherit the parent's id.
if hasattr(os, "register_at_fork"):
    os.register_at_fork(after_in_child=_reset_after_fork)


__all__ = ["generate_instance_id", "get_instance_id"]
