"""Payroll month state machine with transition validation."""
from typing import Dict, List

from settlement.core.exceptions import InvalidTransition, MonthNotEditable
from settlement.models.payroll import PayrollMonthStatus
from settlement.utils.enums import enum_to_str


class PayrollMonthStateMachine:
    """State machine for payroll month status transitions.

    Allowed transitions:
    - draft -> finalized
    - finalized -> locked
    - finalized -> draft (reopen)
    - locked -> draft (reopen)
    """

    VALID_TRANSITIONS: Dict[str, List[str]] = {
        PayrollMonthStatus.DRAFT.value: [PayrollMonthStatus.FINALIZED.value],
        PayrollMonthStatus.FINALIZED.value: [PayrollMonthStatus.LOCKED.value, PayrollMonthStatus.DRAFT.value],
        PayrollMonthStatus.LOCKED.value: [PayrollMonthStatus.DRAFT.value],
    }

    # Statuses where records may be (re)generated
    GENERATION_ALLOWED = {PayrollMonthStatus.DRAFT.value}

    @classmethod
    def can_transition(cls, from_status, to_status) -> bool:
        allowed = cls.VALID_TRANSITIONS.get(enum_to_str(from_status), [])
        return enum_to_str(to_status) in allowed

    @classmethod
    def validate_transition(cls, from_status, to_status, month_key: str = None) -> None:
        """Raise InvalidTransition if from_status -> to_status is not allowed."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransition(
                enum_to_str(from_status),
                enum_to_str(to_status),
                entity_type="payroll_month",
                entity_id=month_key,
            )

    @classmethod
    def is_reopen(cls, from_status, to_status) -> bool:
        return (
            enum_to_str(to_status) == PayrollMonthStatus.DRAFT.value
            and enum_to_str(from_status) in (PayrollMonthStatus.FINALIZED.value, PayrollMonthStatus.LOCKED.value)
        )

    @classmethod
    def can_generate(cls, status) -> bool:
        return enum_to_str(status) in cls.GENERATION_ALLOWED

    @classmethod
    def ensure_editable(cls, status, month_key: str) -> None:
        if not cls.can_generate(status):
            raise MonthNotEditable(
                f"Payroll month {month_key} is {enum_to_str(status)}",
                entity_type="payroll_month",
                entity_id=month_key,
                current_state=enum_to_str(status),
            )

    @classmethod
    def get_next_statuses(cls, current_status) -> List[str]:
        return cls.VALID_TRANSITIONS.get(enum_to_str(current_status), [])
