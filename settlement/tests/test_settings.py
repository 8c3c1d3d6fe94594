"""
Tests for versioned approval settings
"""
from decimal import Decimal

import pytest

from settlement.core.exceptions import InvalidSettings, NotFound
from settlement.models.audit_log import AuditLog
from settlement.services.settings_service import (
    get_current_settings,
    get_settings_version,
    list_settings_versions,
    update_settings,
)


def test_defaults_are_seeded_as_version_one(db):
    settings = get_current_settings(db)
    assert settings.version == 1
    assert settings.rule_for("leave").required_levels == 1
    assert settings.rule_for("loan").required_levels == 2
    assert settings.rule_for("allowance").required_levels == 2
    assert settings.rule_for("penalty").escalation_overdue_days == 3
    assert settings.rule_for("other").auto_approve_threshold == Decimal("0")


def test_update_merges_partial_rules_into_new_version(db, admin):
    updated = update_settings(db, {"loan": {"auto_approve_threshold": "500"}}, admin.id)

    assert updated.version == 2
    assert updated.rule_for("loan").auto_approve_threshold == Decimal("500")
    assert updated.rule_for("loan").required_levels == 2
    assert updated.rule_for("leave").required_levels == 1
    assert get_current_settings(db).version == 2


def test_previous_versions_stay_readable(db, admin):
    update_settings(db, {"leave": {"required_levels": 3}}, admin.id)
    update_settings(db, {"leave": {"required_levels": 4}}, admin.id)

    assert get_settings_version(db, 1).rule_for("leave").required_levels == 1
    assert get_settings_version(db, 2).rule_for("leave").required_levels == 3
    assert get_current_settings(db).rule_for("leave").required_levels == 4
    assert [row.version for row in list_settings_versions(db)] == [3, 2, 1]

    with pytest.raises(NotFound):
        get_settings_version(db, 42)


@pytest.mark.parametrize("rules", [
    {"leave": {"required_levels": -1}},
    {"leave": {"required_levels": 11}},
    {"loan": {"auto_approve_threshold": "-5"}},
    {"loan": {"escalation_overdue_days": -2}},
    {"loan": {"required_levels": "many"}},
    {"bonus": {"required_levels": 1}},
])
def test_invalid_settings_are_refused(db, admin, rules):
    with pytest.raises(InvalidSettings):
        update_settings(db, rules, admin.id)
    assert get_current_settings(db).version == 1


def test_update_is_audited(db, admin):
    update_settings(db, {"other": {"escalation_overdue_days": 7}}, admin.id)
    entry = db.query(AuditLog).filter(AuditLog.entity_type == "approval_settings").one()
    assert entry.action == "UPDATE"
    assert entry.actor_id == admin.id
    assert entry.before_state["version"] == 1
    assert entry.after_state["rules"]["other"]["escalation_overdue_days"] == 7
