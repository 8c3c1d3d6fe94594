"""
Escalation of overdue approval requests.

A pending request is overdue when its oldest pending level has waited longer
than the escalation_overdue_days configured for its type. The wait starts at
the moment the previous level was approved, or at request creation for
level 1. Escalation only raises a visible flag for administrators: the request
stays pending and actionable, and an already-escalated request is skipped on
later sweeps.
"""
import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from settlement.db.concurrency import run_with_retry
from settlement.models.approval import ApprovalRequest, RequestStatus, StepStatus
from settlement.services.audit_service import log_audit
from settlement.services.settings_service import ApprovalSettings, get_current_settings
from settlement.utils.datetime_utils import ensure_utc, now_utc
from settlement.utils.enums import enum_to_str

logger = logging.getLogger(__name__)


def waiting_since(request: ApprovalRequest):
    """(oldest pending step, when it started waiting) or (None, None)."""
    pending = [s for s in request.steps if enum_to_str(s.status) == StepStatus.PENDING.value]
    if not pending:
        return None, None
    oldest = min(pending, key=lambda s: s.level)
    prior = [
        ensure_utc(s.acted_at)
        for s in request.steps
        if s.level < oldest.level and enum_to_str(s.status) == StepStatus.APPROVED.value and s.acted_at
    ]
    return oldest, (max(prior) if prior else ensure_utc(request.created_at))


def is_request_overdue(request: ApprovalRequest, settings: ApprovalSettings, now: datetime) -> bool:
    if enum_to_str(request.final_status) != RequestStatus.PENDING.value:
        return False
    overdue_days = settings.rule_for(request.request_type).escalation_overdue_days
    if overdue_days <= 0:
        return False
    step, started = waiting_since(request)
    if step is None:
        return False
    return ensure_utc(now) - started > timedelta(days=overdue_days)


def _scan_op(db: Session, now: datetime, settings: ApprovalSettings) -> List[int]:
    candidates = (
        db.query(ApprovalRequest)
        .filter(
            ApprovalRequest.final_status == RequestStatus.PENDING.value,
            ApprovalRequest.escalated.is_(False),
        )
        .order_by(ApprovalRequest.id)
        .all()
    )
    escalated: List[int] = []
    for request in candidates:
        if not is_request_overdue(request, settings, now):
            continue
        step, started = waiting_since(request)
        request.escalated = True
        request.escalated_at = now
        request.updated_at = now
        log_audit(
            db,
            actor_id=None,
            action="ESCALATE",
            entity_type="approval_request",
            entity_id=request.id,
            before={"escalated": False},
            after={"escalated": True},
            meta={
                "pending_level": step.level,
                "approver_id": step.approver_id,
                "waiting_since": started,
                "overdue_days": settings.rule_for(request.request_type).escalation_overdue_days,
                "settings_version": settings.version,
            },
        )
        escalated.append(request.id)
    return escalated


def scan_overdue(
    db: Session,
    now: Optional[datetime] = None,
    settings: Optional[ApprovalSettings] = None,
) -> List[int]:
    """
    Flag every overdue pending request as escalated.

    Returns:
        IDs escalated by this sweep (already-escalated requests are not repeated)
    """
    now = ensure_utc(now) if now else now_utc()
    settings = settings or get_current_settings(db)
    escalated = run_with_retry(db, "escalation_sweep", None, _scan_op, now, settings)
    logger.info("Escalation sweep: escalated=%s ids=%s settings_version=%s", len(escalated), escalated, settings.version)
    return escalated


def list_escalated(db: Session) -> List[ApprovalRequest]:
    """Escalated requests still waiting for a decision."""
    return (
        db.query(ApprovalRequest)
        .filter(
            ApprovalRequest.escalated.is_(True),
            ApprovalRequest.final_status == RequestStatus.PENDING.value,
        )
        .order_by(ApprovalRequest.escalated_at)
        .all()
    )


class EscalationScanner:
    """
    Single-flight wrapper around scan_overdue.

    A sweep requested while another is still running returns None instead of
    starting a second one.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def run_once(self, now: Optional[datetime] = None, db: Optional[Session] = None) -> Optional[List[int]]:
        """Run one sweep, on db if given, else on a fresh session."""
        if not self._lock.acquire(blocking=False):
            logger.info("Escalation sweep already running; skipping")
            return None
        try:
            if db is not None:
                return scan_overdue(db, now)
            session = self._session_factory()
            try:
                return scan_overdue(session, now)
            finally:
                session.close()
        finally:
            self._lock.release()

    def _worker(self, interval_seconds: int) -> None:
        while not self._stop.wait(interval_seconds):
            try:
                self.run_once()
            except Exception:
                # Keep the worker alive; the next tick retries
                logger.exception("Escalation sweep failed")

    def start(self, interval_seconds: int) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._worker, args=(interval_seconds,), daemon=True, name="EscalationScanner"
        )
        self._thread.start()
        logger.info("Escalation scanner started: interval=%ss", interval_seconds)

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
