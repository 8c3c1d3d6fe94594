"""
Auto-approval short-circuit
"""
from decimal import Decimal
from typing import Optional

from settlement.models.approval import RequestType
from settlement.services.settings_service import ApprovalSettings
from settlement.utils.money import to_decimal

# Request types whose magnitude can be compared against a threshold
AUTO_APPROVABLE_TYPES = (RequestType.LEAVE, RequestType.LOAN, RequestType.ALLOWANCE)


def payload_magnitude(request_type, payload) -> Optional[Decimal]:
    """Days for leave, amount for loan/allowance, None otherwise."""
    if RequestType(request_type) not in AUTO_APPROVABLE_TYPES:
        return None
    magnitude = payload.magnitude
    return to_decimal(magnitude) if magnitude is not None else None


def try_auto_approve(request_type, payload, settings: ApprovalSettings) -> bool:
    """
    True when the payload is small enough to bypass the chain.

    A threshold of 0 disables auto-approval for the type.
    """
    threshold = settings.rule_for(request_type).auto_approve_threshold
    if threshold is None or threshold <= 0:
        return False
    magnitude = payload_magnitude(request_type, payload)
    if magnitude is None:
        return False
    return magnitude <= threshold
