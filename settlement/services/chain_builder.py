"""
Approval chain construction and final status derivation.

A chain is frozen when the request is created. Everything here is pure so the
same inputs always give the same chain and the same derived status.
"""
from typing import Iterable, List, Mapping, NamedTuple, Optional, Tuple

from settlement.models.approval import RequestStatus, StepStatus
from settlement.services.hierarchy_service import resolve_manager_chain
from settlement.services.settings_service import ApprovalSettings
from settlement.utils.enums import enum_to_str


class ChainStep(NamedTuple):
    level: int
    approver_id: int
    status: str = StepStatus.PENDING.value


ApprovalChainSnapshot = Tuple[ChainStep, ...]


def build_chain(
    request_type,
    requester_id: int,
    settings: ApprovalSettings,
    directory: Mapping[int, Optional[int]],
) -> ApprovalChainSnapshot:
    """
    Build the chain for a new request.

    The first required_levels managers of the requester become levels 1..n.
    A shorter management chain is clamped to its actual length; 0 required
    levels gives an empty chain.

    Raises:
        NotFound: requester not in the directory
        CycleDetected: the requester's reporting lines loop
    """
    required = settings.rule_for(request_type).required_levels
    managers = resolve_manager_chain(requester_id, directory)
    if required <= 0:
        return ()
    return tuple(
        ChainStep(level=index, approver_id=approver_id)
        for index, approver_id in enumerate(managers[:required], start=1)
    )


def derive_final_status(
    step_statuses: Iterable,
    cancelled: bool = False,
    override_status=None,
    auto_approved: bool = False,
) -> str:
    """
    The request-level status as a pure function of its chain and flags.

    Precedence: cancelled, admin override, auto-approval, then the chain
    itself (any rejected step rejects; all approved, or no steps, approves).
    """
    if cancelled:
        return RequestStatus.CANCELLED.value
    if override_status:
        return enum_to_str(override_status)
    if auto_approved:
        return RequestStatus.APPROVED.value

    statuses = [enum_to_str(s) for s in step_statuses]
    if any(s == StepStatus.REJECTED.value for s in statuses):
        return RequestStatus.REJECTED.value
    if all(s == StepStatus.APPROVED.value for s in statuses):
        return RequestStatus.APPROVED.value
    return RequestStatus.PENDING.value


def validate_chain(chain: Iterable[ChainStep], requester_id: int) -> List[str]:
    """
    Structural checks on a chain. Returns error messages (empty if valid).
    """
    errors: List[str] = []
    steps = list(chain)
    levels = [step.level for step in steps]
    if levels != list(range(1, len(steps) + 1)):
        errors.append(f"Levels must run 1..{len(steps)} without gaps, got {levels}")

    approvers = [step.approver_id for step in steps]
    if len(set(approvers)) != len(approvers):
        errors.append("An approver appears on more than one level")
    if requester_id in approvers:
        errors.append("The requester cannot approve their own request")

    for step in steps:
        if enum_to_str(step.status) not in {s.value for s in StepStatus}:
            errors.append(f"Level {step.level} has unknown status '{step.status}'")
    return errors
