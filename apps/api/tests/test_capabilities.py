from __future__ import annotations

from dataclasses import dataclass

import pytest

from casework import audit
from casework.platform.security.capabilities import (
    RELATION_ONLY,
    Capability,
    Relation,
    Role,
    authorize,
    capabilities_for,
    has_capability,
    normalize_role,
    relations_of,
    roles_of,
)
from casework.platform.security.context import AuthContext
from casework.platform.security.errors import AuthorizationError, CapabilityDeniedError


@dataclass
class _Case:
    id: str = "case-1"
    project_head_id: str | None = "head-1"
    client_id: str | None = "client-1"


@pytest.fixture(autouse=True)
def clear_audit() -> None:
    audit.clear()


def _ctx(user_id: str, *roles: str, super_admin: bool = False) -> AuthContext:
    return AuthContext(user_id=user_id, tenant_id="tenant-a", roles=list(roles), is_super_admin=super_admin)


def test_normalize_role_accepts_aliases_and_spelling_variants() -> None:
    assert normalize_role("admin") == Role.SUPER_ADMIN
    assert normalize_role("system.admin") == Role.SUPER_ADMIN
    assert normalize_role("Accounts Team") == Role.ACCOUNTS_TEAM
    assert normalize_role("site-engineer") == Role.SITE_ENGINEER
    assert normalize_role("guest") is None


def test_super_admin_flag_implies_role() -> None:
    assert roles_of(_ctx("root", super_admin=True)) == {Role.SUPER_ADMIN}


def test_relations_follow_case_parties() -> None:
    case = _Case()
    assert relations_of(_ctx("head-1"), case) == {Relation.PROJECT_HEAD}
    assert relations_of(_ctx("client-1"), case) == {Relation.CLIENT}
    assert relations_of(_ctx("someone"), case) == set()
    assert relations_of(_ctx("head-1"), None) == set()


@pytest.mark.parametrize("capability", sorted(RELATION_ONLY, key=str))
def test_relation_only_capabilities_are_never_granted_by_role(capability: Capability) -> None:
    admin = _ctx("root", "super_admin", super_admin=True)
    assert has_capability(admin, capability, _Case()) is False


def test_project_head_actions_belong_to_the_named_head() -> None:
    case = _Case()
    head = _ctx("head-1", "execution_team")
    other_head = _ctx("head-2", "execution_team")

    for capability in (Capability.PLAN_SUBMIT, Capability.EXECUTION_MARK_COMPLETE, Capability.JMS_LAUNCH):
        assert has_capability(head, capability, case)
        assert not has_capability(other_head, capability, case)


def test_client_actions_belong_to_the_case_client() -> None:
    case = _Case()
    client = _ctx("client-1", "client")

    assert has_capability(client, Capability.PLAN_APPROVE_CLIENT, case)
    assert has_capability(client, Capability.JMS_SIGN, case)
    assert has_capability(client, Capability.CASE_READ, case)
    assert not has_capability(client, Capability.PLAN_APPROVE_ADMIN, case)
    assert not has_capability(client, Capability.CASE_READ, _Case(client_id="client-2"))


def test_admin_approval_and_rejection_are_super_admin_only() -> None:
    case = _Case()
    assert has_capability(_ctx("root", "super_admin"), Capability.PLAN_APPROVE_ADMIN, case)
    assert has_capability(_ctx("root", "super_admin"), Capability.PLAN_REJECT, case)
    assert not has_capability(_ctx("gm", "sales_general_manager"), Capability.PLAN_APPROVE_ADMIN, case)
    assert not has_capability(_ctx("head-1", "execution_team"), Capability.PLAN_APPROVE_ADMIN, case)


def test_role_table_for_staff() -> None:
    accounts = capabilities_for(_ctx("acc", "accounts_team"))
    assert {Capability.PAYMENT_DECIDE, Capability.EXPENSE_DECIDE, Capability.SALARY_MANAGE} <= accounts
    assert Capability.CASE_CREATE not in accounts

    engineer = capabilities_for(_ctx("eng", "site_engineer"))
    assert Capability.DAILY_LOG_WRITE in engineer
    assert Capability.PAYMENT_RECORD not in engineer

    assert capabilities_for(_ctx("nobody", "guest")) == set()


def test_authorize_raises_and_audits_denial() -> None:
    ctx = _ctx("sales-1", "sales_team_member")

    with pytest.raises(CapabilityDeniedError) as exc_info:
        authorize(ctx, Capability.PLAN_APPROVE_ADMIN, _Case())

    assert isinstance(exc_info.value, AuthorizationError)
    assert exc_info.value.capability == Capability.PLAN_APPROVE_ADMIN.value
    denied = [entry for entry in audit.audit_entries if entry["action"] == "capability.denied"]
    assert denied
    assert denied[-1]["entity_id"] == "case-1"
    assert denied[-1]["after"]["capability"] == "execution.plan.approve_admin"


def test_authorize_passes_silently_when_granted() -> None:
    authorize(_ctx("head-1"), Capability.PLAN_SUBMIT, _Case())
    assert audit.audit_entries == []
