from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass


@dataclass
class DbTiming:
    elapsed_ms: float = 0.0
    statements: int = 0


_current: ContextVar[DbTiming | None] = ContextVar("pdv_db_timing", default=None)


def start_db_timer() -> object:
    return _current.set(DbTiming())


def stop_db_timer(token: object) -> None:
    _current.reset(token)


def is_timing() -> bool:
    return _current.get() is not None


def add_db_time(delta_ms: float) -> None:
    timing = _current.get()
    if timing is None:
        return
    timing.elapsed_ms += delta_ms
    timing.statements += 1


def current_db_timing() -> DbTiming | None:
    return _current.get()
