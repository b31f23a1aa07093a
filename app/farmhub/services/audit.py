import logging
from dataclasses import dataclass, field
from datetime import datetime

from app.farmhub.core.metrics import metrics
from app.farmhub.db.tenant_models import AuditLog
from app.farmhub.repos.audit import AuditRepository

logger = logging.getLogger(__name__)


@dataclass
class AuditEventPayload:
    store_id: str
    user_id: str
    username: str | None
    action: str
    target_table: str
    target_id: str | None = None
    trace_id: str | None = None
    metadata: dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.utcnow)


class AuditService:
    """Best-effort audit logging into the store's own database.

    Strategy: failures are logged and swallowed to avoid breaking request flows.
    """

    def __init__(self, db):
        self.repo = AuditRepository(db)

    def record_event(self, payload: AuditEventPayload) -> None:
        metadata = dict(payload.metadata or {})
        metadata.setdefault("trace_id", payload.trace_id)
        try:
            self.repo.create(
                AuditLog(
                    store_id=payload.store_id,
                    user_id=payload.user_id,
                    username=payload.username,
                    action=payload.action,
                    target_table=payload.target_table,
                    target_id=payload.target_id,
                    event_metadata=metadata,
                    created_at=payload.timestamp,
                )
            )
        except Exception:
            metrics.increment_audit_write_failure()
            logger.exception(
                "Failed to write audit event",
                extra={
                    "action": payload.action,
                    "trace_id": payload.trace_id,
                    "store_id": payload.store_id,
                    "target_table": payload.target_table,
                },
            )


def record_audit(data_source, payload: AuditEventPayload) -> None:
    """Background task entry point: opens its own tenant session."""
    try:
        db = data_source.session()
    except Exception:
        metrics.increment_audit_write_failure()
        logger.exception("Failed to open tenant session for audit", extra={"store_id": payload.store_id})
        return
    try:
        AuditService(db).record_event(payload)
    finally:
        db.close()
