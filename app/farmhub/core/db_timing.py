from __future__ import annotations

import time
from contextvars import ContextVar

from sqlalchemy import event
from sqlalchemy.engine import Engine

_db_time_ms: ContextVar[float | None] = ContextVar("db_time_ms", default=None)


def start_db_timer() -> object:
    return _db_time_ms.set(0.0)


def stop_db_timer(token: object) -> None:
    _db_time_ms.reset(token)


def add_db_time(delta_ms: float) -> None:
    current = _db_time_ms.get()
    if current is None:
        return
    _db_time_ms.set(current + delta_ms)


def get_db_time_ms() -> float | None:
    return _db_time_ms.get()


def attach_query_timer(engine: Engine) -> None:
    """Accumulate cursor time of ``engine`` into the current request's db timer.

    Both the global engine and every tenant engine are instrumented, so the
    request log reports the total time spent in either database.
    """

    @event.listens_for(engine, "before_cursor_execute")
    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if get_db_time_ms() is None:
            return
        conn.info["query_start_time"] = time.perf_counter()

    @event.listens_for(engine, "after_cursor_execute")
    def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if get_db_time_ms() is None:
            return
        start = conn.info.pop("query_start_time", None)
        if start is None:
            return
        add_db_time((time.perf_counter() - start) * 1000)
