"""
Versioned approval settings.

Settings are never edited in place: every update writes a new version row,
and the engine threads an immutable ApprovalSettings snapshot into the chain
builder, the auto-approve evaluator and the escalation scanner.
"""
import logging
from dataclasses import dataclass, field, asdict
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from settlement.core.exceptions import ConcurrentModification, InvalidSettings, NotFound
from settlement.models.approval import ApprovalSettingsVersion, RequestType
from settlement.services.audit_service import log_audit
from settlement.utils.datetime_utils import now_utc
from settlement.utils.money import to_decimal

logger = logging.getLogger(__name__)

MAX_APPROVAL_LEVELS = 10


@dataclass(frozen=True)
class RequestTypeRule:
    required_levels: int = 1
    # 0 disables auto-approval
    auto_approve_threshold: Decimal = Decimal("0")
    # 0 disables escalation
    escalation_overdue_days: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["auto_approve_threshold"] = str(self.auto_approve_threshold)
        return data


@dataclass(frozen=True)
class ApprovalSettings:
    version: int
    rules: Mapping[str, RequestTypeRule] = field(default_factory=dict)

    def rule_for(self, request_type) -> RequestTypeRule:
        key = request_type.value if isinstance(request_type, RequestType) else str(request_type)
        return self.rules.get(key, RequestTypeRule())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "rules": {k: v.to_dict() for k, v in self.rules.items()},
        }


DEFAULT_RULES: Dict[str, RequestTypeRule] = {
    RequestType.LEAVE.value: RequestTypeRule(required_levels=1, escalation_overdue_days=3),
    RequestType.LOAN.value: RequestTypeRule(required_levels=2, escalation_overdue_days=3),
    RequestType.ALLOWANCE.value: RequestTypeRule(required_levels=2, escalation_overdue_days=3),
    RequestType.PENALTY.value: RequestTypeRule(required_levels=1, escalation_overdue_days=3),
    RequestType.OTHER.value: RequestTypeRule(required_levels=1, escalation_overdue_days=3),
}


def parse_rule(request_type: str, raw: Mapping[str, Any], base: Optional[RequestTypeRule] = None) -> RequestTypeRule:
    """
    Build a RequestTypeRule from a (possibly partial) mapping.

    Raises:
        InvalidSettings: on out-of-range values
    """
    base = base or RequestTypeRule()
    try:
        levels = int(raw.get("required_levels", base.required_levels))
        threshold = to_decimal(raw.get("auto_approve_threshold", base.auto_approve_threshold))
        overdue = int(raw.get("escalation_overdue_days", base.escalation_overdue_days))
    except (TypeError, ValueError, ArithmeticError) as exc:
        raise InvalidSettings(f"Invalid settings for {request_type}: {exc}", entity_type="approval_settings") from exc

    if not 0 <= levels <= MAX_APPROVAL_LEVELS:
        raise InvalidSettings(
            f"required_levels for {request_type} must be between 0 and {MAX_APPROVAL_LEVELS}",
            entity_type="approval_settings",
        )
    if threshold < 0:
        raise InvalidSettings(
            f"auto_approve_threshold for {request_type} must be non-negative",
            entity_type="approval_settings",
        )
    if overdue < 0:
        raise InvalidSettings(
            f"escalation_overdue_days for {request_type} must be non-negative",
            entity_type="approval_settings",
        )
    return RequestTypeRule(required_levels=levels, auto_approve_threshold=threshold, escalation_overdue_days=overdue)


def settings_from_row(row: ApprovalSettingsVersion) -> ApprovalSettings:
    rules = {k: parse_rule(k, v) for k, v in (row.rules_json or {}).items()}
    return ApprovalSettings(version=row.version, rules=rules)


def _latest_row(db: Session) -> Optional[ApprovalSettingsVersion]:
    return db.query(ApprovalSettingsVersion).order_by(ApprovalSettingsVersion.version.desc()).first()


def get_current_settings(db: Session) -> ApprovalSettings:
    """
    Current settings snapshot, creating version 1 with defaults if none exists.
    """
    row = _latest_row(db)
    if not row:
        row = ApprovalSettingsVersion(
            version=1,
            rules_json={k: v.to_dict() for k, v in DEFAULT_RULES.items()},
            created_at=now_utc(),
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        logger.info("Seeded default approval settings (version 1)")
    return settings_from_row(row)


def get_settings_version(db: Session, version: int) -> ApprovalSettings:
    row = db.query(ApprovalSettingsVersion).filter(ApprovalSettingsVersion.version == version).first()
    if not row:
        raise NotFound(f"Approval settings version {version} not found", entity_type="approval_settings", entity_id=version)
    return settings_from_row(row)


def list_settings_versions(db: Session) -> List[ApprovalSettingsVersion]:
    return db.query(ApprovalSettingsVersion).order_by(ApprovalSettingsVersion.version.desc()).all()


def update_settings(db: Session, rules: Mapping[str, Mapping[str, Any]], actor_id: int) -> ApprovalSettings:
    """
    Write a new settings version. Request types missing from rules keep their
    current values; given request types may be partial.

    Raises:
        InvalidSettings: unknown request type or out-of-range value
        ConcurrentModification: another update claimed the same version number
    """
    current = get_current_settings(db)
    valid_types = {t.value for t in RequestType}
    merged: Dict[str, RequestTypeRule] = dict(current.rules)
    for request_type, raw in rules.items():
        if request_type not in valid_types:
            raise InvalidSettings(f"Unknown request type '{request_type}'", entity_type="approval_settings")
        merged[request_type] = parse_rule(request_type, raw or {}, base=current.rule_for(request_type))

    new_settings = ApprovalSettings(version=current.version + 1, rules=merged)
    row = ApprovalSettingsVersion(
        version=new_settings.version,
        rules_json={k: v.to_dict() for k, v in merged.items()},
        created_by_id=actor_id,
        created_at=now_utc(),
    )
    try:
        db.add(row)
        db.flush()
        log_audit(
            db,
            actor_id=actor_id,
            action="UPDATE",
            entity_type="approval_settings",
            entity_id=row.version,
            before=current.to_dict(),
            after=new_settings.to_dict(),
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConcurrentModification(
            f"Approval settings version {new_settings.version} already exists",
            entity_type="approval_settings",
            entity_id=new_settings.version,
        ) from exc
    logger.info("Approval settings updated: version=%s by=%s", new_settings.version, actor_id)
    return new_settings
