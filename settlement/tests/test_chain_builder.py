"""
Tests for chain construction and final status derivation
"""
from decimal import Decimal

from settlement.services.chain_builder import ChainStep, build_chain, derive_final_status, validate_chain
from settlement.services.settings_service import ApprovalSettings, RequestTypeRule


def _settings(levels: int) -> ApprovalSettings:
    return ApprovalSettings(version=1, rules={"loan": RequestTypeRule(required_levels=levels)})


DIRECTORY = {1: None, 2: 1, 3: 2}


def test_chain_takes_first_required_levels_managers():
    chain = build_chain("loan", 3, _settings(2), DIRECTORY)
    assert chain == (ChainStep(1, 2), ChainStep(2, 1))
    assert all(step.status == "pending" for step in chain)


def test_short_hierarchy_is_clamped():
    chain = build_chain("loan", 2, _settings(2), DIRECTORY)
    assert len(chain) == 1
    assert chain[0].approver_id == 1

    # the single approval completes the request
    assert derive_final_status(["approved"]) == "approved"


def test_zero_required_levels_gives_empty_chain():
    assert build_chain("loan", 3, _settings(0), DIRECTORY) == ()


def test_root_requester_gets_empty_chain():
    assert build_chain("loan", 1, _settings(3), DIRECTORY) == ()


def test_chain_is_deterministic():
    settings = _settings(2)
    assert build_chain("loan", 3, settings, DIRECTORY) == build_chain("loan", 3, settings, DIRECTORY)


def test_derive_final_status():
    assert derive_final_status(["pending", "pending"]) == "pending"
    assert derive_final_status(["approved", "pending"]) == "pending"
    assert derive_final_status(["approved", "approved"]) == "approved"
    assert derive_final_status(["pending", "rejected"]) == "rejected"
    assert derive_final_status(["approved", "rejected"]) == "rejected"
    assert derive_final_status([]) == "approved"


def test_flags_take_precedence_over_steps():
    assert derive_final_status(["approved"], cancelled=True) == "cancelled"
    assert derive_final_status(["rejected"], override_status="approved") == "approved"
    assert derive_final_status(["pending"], auto_approved=True) == "approved"
    assert derive_final_status(["pending"], cancelled=True, override_status="approved") == "cancelled"


def test_validate_chain_reports_structural_problems():
    assert validate_chain((ChainStep(1, 2), ChainStep(2, 1)), requester_id=3) == []

    errors = validate_chain((ChainStep(1, 2), ChainStep(3, 2)), requester_id=2)
    assert len(errors) == 3


def test_rule_defaults_for_unknown_type():
    settings = ApprovalSettings(version=1, rules={})
    rule = settings.rule_for("other")
    assert rule.required_levels == 1
    assert rule.auto_approve_threshold == Decimal("0")
