from __future__ import annotations

import logging
import math
import re
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from app.farmhub.core.config import Settings, settings
from app.farmhub.core.db_timing import attach_query_timer
from app.farmhub.core.error_catalog import AppError, TenantConnectionError, TenantNotFoundError
from app.farmhub.core.metrics import metrics
from app.farmhub.db.tenant_models import TenantBase
from app.farmhub.repos.stores import StoreRepository

logger = logging.getLogger(__name__)

SCHEMA_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")
CAPACITY_EVICTION_FRACTION = 0.2


@dataclass
class TenantDataSource:
    store_id: str
    schema_name: str
    engine: Engine
    session_factory: sessionmaker
    created_at: float
    last_accessed: float
    access_count: int = 0

    def session(self) -> Session:
        return self.session_factory()


@dataclass
class _PendingInit:
    done: threading.Event = field(default_factory=threading.Event)
    result: TenantDataSource | None = None
    error: AppError | None = None


def build_tenant_url(template: str, schema_name: str) -> tuple[str, bool]:
    """Return the tenant URL and whether the tenant owns a whole database."""
    if "{schema}" in template:
        return template.replace("{schema}", schema_name), True
    return template, False


def create_tenant_engine(
    url: str,
    *,
    schema_name: str,
    database_per_tenant: bool,
    app_settings: Settings,
) -> Engine:
    kwargs: dict = {"future": True, "pool_pre_ping": True}
    backend = make_url(url).get_backend_name()
    if backend == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update(
            pool_size=app_settings.TENANT_DB_POOL_SIZE,
            max_overflow=app_settings.TENANT_DB_MAX_OVERFLOW,
            pool_timeout=app_settings.TENANT_DB_POOL_TIMEOUT_SEC,
        )
        if backend == "postgresql":
            kwargs["connect_args"] = {"connect_timeout": app_settings.TENANT_DB_CONNECT_TIMEOUT_SEC}
    if not database_per_tenant:
        kwargs["execution_options"] = {"schema_translate_map": {None: schema_name}}
    engine = create_engine(url, **kwargs)
    attach_query_timer(engine)
    return engine


class TenantDataSourceRegistry:
    """Process-wide cache of tenant connection pools keyed by store id.

    The first lookup of a store is single-flight: concurrent callers share one
    initialisation and receive the same handle. Failed initialisations are not
    cached. Only this class inserts into or evicts from the cache.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        app_settings: Settings | None = None,
        engine_factory: Callable[..., Engine] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._session_factory = session_factory
        self._settings = app_settings or settings
        self._engine_factory = engine_factory or create_tenant_engine
        self._clock = clock
        self._lock = threading.Lock()
        self._data_sources: dict[str, TenantDataSource] = {}
        self._initializing: dict[str, _PendingInit] = {}

    def get_tenant_data_source(self, store_id: str) -> TenantDataSource:
        key = (store_id or "").strip()
        if not key:
            raise TenantNotFoundError(details={"store_id": store_id})

        with self._lock:
            cached = self._data_sources.get(key)
            if cached is not None:
                self._touch(cached)
                metrics.record_tenant_event("hit")
                return cached
            pending = self._initializing.get(key)
            owner = pending is None
            if owner:
                pending = _PendingInit()
                self._initializing[key] = pending

        if not owner:
            return self._wait_for(key, pending)
        return self._initialize(key, pending)

    def evict(self, store_id: str) -> bool:
        key = (store_id or "").strip()
        with self._lock:
            data_source = self._data_sources.pop(key, None)
            cached_count = len(self._data_sources)
        if data_source is None:
            return False
        metrics.set_tenant_cached(cached_count)
        self._dispose(data_source, reason="evict")
        return True

    def cleanup_idle(self) -> list[str]:
        now = self._clock()
        timeout = self._settings.TENANT_IDLE_TIMEOUT_SEC
        with self._lock:
            idle_keys = [
                key for key, data_source in self._data_sources.items() if now - data_source.last_accessed > timeout
            ]
            victims = [self._data_sources.pop(key) for key in idle_keys]
            cached_count = len(self._data_sources)
        if victims:
            logger.info("Cleaning up %s idle tenant data sources", len(victims))
            metrics.set_tenant_cached(cached_count)
        for data_source in victims:
            self._dispose(data_source, reason="idle")
        return idle_keys

    def drain(self) -> None:
        with self._lock:
            victims = list(self._data_sources.values())
            self._data_sources.clear()
        metrics.set_tenant_cached(0)
        for data_source in victims:
            self._dispose(data_source, reason="shutdown")

    def connection_stats(self) -> dict:
        now = self._clock()
        with self._lock:
            details = [
                {
                    "store_id": data_source.store_id,
                    "schema_name": data_source.schema_name,
                    "access_count": data_source.access_count,
                    "age_seconds": round(now - data_source.created_at, 3),
                    "idle_seconds": round(now - data_source.last_accessed, 3),
                }
                for data_source in self._data_sources.values()
            ]
            initializing = len(self._initializing)
        return {
            "total_connections": len(details),
            "initializing_connections": initializing,
            "max_cached_connections": self._settings.TENANT_MAX_CACHED_CONNECTIONS,
            "connections": sorted(details, key=lambda item: item["store_id"]),
        }

    def _touch(self, data_source: TenantDataSource) -> None:
        data_source.last_accessed = self._clock()
        data_source.access_count += 1

    def _wait_for(self, key: str, pending: _PendingInit) -> TenantDataSource:
        logger.debug("Waiting for tenant data source initialisation", extra={"store_id": key})
        if not pending.done.wait(timeout=self._settings.TENANT_DB_ACQUIRE_TIMEOUT_SEC):
            metrics.record_tenant_event("failure")
            raise TenantConnectionError(details={"store_id": key, "reason": "acquire_timeout"})
        if pending.error is not None:
            error = pending.error
            raise error.__class__(error.error, error.details) from error
        with self._lock:
            self._touch(pending.result)
        return pending.result

    def _initialize(self, key: str, pending: _PendingInit) -> TenantDataSource:
        metrics.record_tenant_event("miss")
        evicted: list[TenantDataSource] = []
        try:
            schema_name = self._load_schema_name(key)
            data_source = self._open_data_source(key, schema_name)
            with self._lock:
                if len(self._data_sources) >= self._settings.TENANT_MAX_CACHED_CONNECTIONS:
                    evicted = self._pop_oldest_locked()
                self._data_sources[key] = data_source
                cached_count = len(self._data_sources)
            pending.result = data_source
        except AppError as exc:
            pending.error = exc
            metrics.record_tenant_event("failure")
            raise
        except Exception as exc:
            logger.exception("Failed to resolve tenant data source", extra={"store_id": key})
            error = TenantConnectionError(details={"store_id": key, "reason": exc.__class__.__name__})
            pending.error = error
            metrics.record_tenant_event("failure")
            raise error from exc
        finally:
            with self._lock:
                self._initializing.pop(key, None)
            pending.done.set()

        metrics.record_tenant_event("init")
        metrics.set_tenant_cached(cached_count)
        for victim in evicted:
            self._dispose(victim, reason="capacity")
        logger.info(
            "Tenant data source initialised",
            extra={"store_id": key, "schema_name": data_source.schema_name},
        )
        return data_source

    def _load_schema_name(self, key: str) -> str:
        db = self._session_factory()
        try:
            store = StoreRepository(db).get_active_by_id(key)
            if store is None:
                logger.warning("Access to unknown or inactive store", extra={"store_id": key})
                raise TenantNotFoundError(details={"store_id": key})
            schema_name = (store.schema_name or "").strip()
        finally:
            db.close()

        if not SCHEMA_NAME_PATTERN.match(schema_name):
            logger.error("Store has no valid schema name configured", extra={"store_id": key})
            raise TenantConnectionError(details={"store_id": key, "reason": "invalid_schema_name"})
        return schema_name

    def _open_data_source(self, key: str, schema_name: str) -> TenantDataSource:
        url, database_per_tenant = build_tenant_url(self._settings.TENANT_DATABASE_URL, schema_name)
        logger.info("Initialising tenant data source", extra={"store_id": key, "schema_name": schema_name})
        engine = None
        try:
            engine = self._engine_factory(
                url,
                schema_name=schema_name,
                database_per_tenant=database_per_tenant,
                app_settings=self._settings,
            )
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            if self._settings.TENANT_AUTO_CREATE_SCHEMA:
                self._synchronize(engine, schema_name, database_per_tenant)
        except Exception as exc:
            logger.exception(
                "Failed to initialise tenant data source",
                extra={"store_id": key, "schema_name": schema_name},
            )
            if engine is not None:
                engine.dispose()
            raise TenantConnectionError(
                details={"store_id": key, "schema_name": schema_name, "reason": exc.__class__.__name__}
            ) from exc

        now = self._clock()
        return TenantDataSource(
            store_id=key,
            schema_name=schema_name,
            engine=engine,
            session_factory=sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True),
            created_at=now,
            last_accessed=now,
            access_count=1,
        )

    @staticmethod
    def _synchronize(engine: Engine, schema_name: str, database_per_tenant: bool) -> None:
        with engine.begin() as conn:
            if not database_per_tenant and conn.dialect.name == "postgresql":
                conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{schema_name}"'))
            TenantBase.metadata.create_all(conn)

    def _pop_oldest_locked(self) -> list[TenantDataSource]:
        limit = max(1, math.floor(self._settings.TENANT_MAX_CACHED_CONNECTIONS * CAPACITY_EVICTION_FRACTION))
        oldest = sorted(self._data_sources.values(), key=lambda item: item.last_accessed)[:limit]
        for data_source in oldest:
            self._data_sources.pop(data_source.store_id, None)
        return oldest

    @staticmethod
    def _dispose(data_source: TenantDataSource, *, reason: str) -> None:
        metrics.record_tenant_event("evict")
        try:
            data_source.engine.dispose()
        except Exception:
            logger.exception(
                "Failed to dispose tenant data source",
                extra={"store_id": data_source.store_id, "reason": reason},
            )
            return
        logger.info(
            "Tenant data source disposed",
            extra={"store_id": data_source.store_id, "reason": reason},
        )
