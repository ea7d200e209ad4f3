from __future__ import annotations

import os
from typing import cast

import redis

from scenie.core.timers import AsyncioScheduler, Scheduler
from scenie.infra.redis_client import create_redis
from scenie.session_store import SessionStore, store
from scenie.streams import Verbosity

_VERBOSITIES = ("console", "silent", "server")

# Event sinks outlive the request that created their session, so they share one client.
_REDIS: redis.Redis | None = None


def get_redis() -> redis.Redis:
    global _REDIS
    if _REDIS is None:
        _REDIS = create_redis()
    return _REDIS


def close_redis() -> None:
    global _REDIS
    if _REDIS is not None:
        _REDIS.close()
        _REDIS = None


def get_scheduler() -> Scheduler:
    return AsyncioScheduler()


def get_session_store() -> SessionStore:
    return store


def get_emit_verbosity() -> Verbosity:
    value = os.environ.get("SCENIE_EMIT_VERBOSITY", "server").strip().lower()
    if value not in _VERBOSITIES:
        raise ValueError(f"SCENIE_EMIT_VERBOSITY must be one of {', '.join(_VERBOSITIES)}, got {value!r}")
    return cast(Verbosity, value)
