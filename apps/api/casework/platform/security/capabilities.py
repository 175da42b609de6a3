from __future__ import annotations

from enum import StrEnum
from typing import Protocol

from casework import audit
from casework.metrics import observe_capability_denied
from casework.platform.security.context import AuthContext
from casework.platform.security.errors import CapabilityDeniedError


class Role(StrEnum):
    SUPER_ADMIN = "super_admin"
    SALES_GENERAL_MANAGER = "sales_general_manager"
    SALES_TEAM_MEMBER = "sales_team_member"
    DRAWING_TEAM = "drawing_team"
    QUOTATION_TEAM = "quotation_team"
    SITE_ENGINEER = "site_engineer"
    PROCUREMENT_TEAM = "procurement_team"
    EXECUTION_TEAM = "execution_team"
    ACCOUNTS_TEAM = "accounts_team"
    CLIENT = "client"


class Relation(StrEnum):
    PROJECT_HEAD = "project_head"
    CLIENT = "client"


class Capability(StrEnum):
    CASE_CREATE = "case.create"
    CASE_READ = "case.read"
    CASE_ADVANCE_STATUS = "case.advance_status"
    CASE_ASSIGN_TEAM = "case.assign_team"
    BUDGET_MANAGE = "case.budget.manage"
    PLAN_SUBMIT = "execution.plan.submit"
    PLAN_APPROVE_ADMIN = "execution.plan.approve_admin"
    PLAN_APPROVE_CLIENT = "execution.plan.approve_client"
    PLAN_REJECT = "execution.plan.reject"
    DAILY_LOG_WRITE = "execution.daily_log.write"
    EXECUTION_MARK_COMPLETE = "execution.mark_complete"
    JMS_LAUNCH = "execution.jms.launch"
    JMS_SIGN = "execution.jms.sign"
    DOCUMENT_UPLOAD = "documents.upload"
    PAYMENT_RECORD = "finance.payment.record"
    PAYMENT_DECIDE = "finance.payment.decide"
    EXPENSE_RECORD = "finance.expense.record"
    EXPENSE_DECIDE = "finance.expense.decide"
    LEDGER_READ = "ledger.read"
    LEDGER_POST = "ledger.post"
    SALARY_MANAGE = "salary.manage"
    TASK_ASSIGN = "tasks.assign"
    METRICS_READ = "system.metrics.read"


class CaseParties(Protocol):
    project_head_id: str | None
    client_id: str | None


_STAFF_READ = {Capability.CASE_READ}
_SALES = _STAFF_READ | {Capability.CASE_CREATE, Capability.CASE_ADVANCE_STATUS}
_EXECUTION = _STAFF_READ | {Capability.DAILY_LOG_WRITE, Capability.DOCUMENT_UPLOAD, Capability.EXPENSE_RECORD}
_ACCOUNTS = _STAFF_READ | {
    Capability.BUDGET_MANAGE,
    Capability.PAYMENT_RECORD,
    Capability.PAYMENT_DECIDE,
    Capability.EXPENSE_RECORD,
    Capability.EXPENSE_DECIDE,
    Capability.LEDGER_READ,
    Capability.LEDGER_POST,
    Capability.SALARY_MANAGE,
}

# Capabilities that only the party named on the case may exercise; roles never grant these.
RELATION_ONLY: dict[Capability, frozenset[Relation]] = {
    Capability.PLAN_SUBMIT: frozenset({Relation.PROJECT_HEAD}),
    Capability.EXECUTION_MARK_COMPLETE: frozenset({Relation.PROJECT_HEAD}),
    Capability.JMS_LAUNCH: frozenset({Relation.PROJECT_HEAD}),
    Capability.PLAN_APPROVE_CLIENT: frozenset({Relation.CLIENT}),
    Capability.JMS_SIGN: frozenset({Relation.CLIENT}),
}

RELATION_GRANTS: dict[Capability, frozenset[Relation]] = {
    **RELATION_ONLY,
    Capability.CASE_READ: frozenset({Relation.PROJECT_HEAD, Relation.CLIENT}),
    Capability.DAILY_LOG_WRITE: frozenset({Relation.PROJECT_HEAD}),
    Capability.DOCUMENT_UPLOAD: frozenset({Relation.PROJECT_HEAD}),
    Capability.TASK_ASSIGN: frozenset({Relation.PROJECT_HEAD}),
}

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.SUPER_ADMIN: frozenset(set(Capability) - set(RELATION_ONLY)),
    Role.SALES_GENERAL_MANAGER: frozenset(
        _SALES | {Capability.CASE_ASSIGN_TEAM, Capability.DOCUMENT_UPLOAD, Capability.TASK_ASSIGN}
    ),
    Role.SALES_TEAM_MEMBER: frozenset(_SALES | {Capability.DOCUMENT_UPLOAD}),
    Role.DRAWING_TEAM: frozenset(_STAFF_READ | {Capability.DOCUMENT_UPLOAD}),
    Role.QUOTATION_TEAM: frozenset(_STAFF_READ | {Capability.DOCUMENT_UPLOAD}),
    Role.SITE_ENGINEER: frozenset(_EXECUTION),
    Role.PROCUREMENT_TEAM: frozenset(_STAFF_READ),
    Role.EXECUTION_TEAM: frozenset(_EXECUTION | {Capability.TASK_ASSIGN}),
    Role.ACCOUNTS_TEAM: frozenset(_ACCOUNTS),
    Role.CLIENT: frozenset(),
}


def normalize_role(raw: str) -> Role | None:
    candidate = raw.strip().lower().replace(" ", "_").replace("-", "_")
    if candidate in {"admin", "system.admin"}:
        return Role.SUPER_ADMIN
    try:
        return Role(candidate)
    except ValueError:
        return None


def roles_of(ctx: AuthContext) -> set[Role]:
    roles = {role for role in (normalize_role(item) for item in ctx.roles) if role is not None}
    if ctx.is_super_admin:
        roles.add(Role.SUPER_ADMIN)
    return roles


def relations_of(ctx: AuthContext, case: CaseParties | None) -> set[Relation]:
    if case is None:
        return set()
    relations: set[Relation] = set()
    if case.project_head_id and case.project_head_id == ctx.user_id:
        relations.add(Relation.PROJECT_HEAD)
    if case.client_id and case.client_id == ctx.user_id:
        relations.add(Relation.CLIENT)
    return relations


def has_capability(ctx: AuthContext, capability: Capability, case: CaseParties | None = None) -> bool:
    if capability not in RELATION_ONLY:
        for role in roles_of(ctx):
            if capability in ROLE_CAPABILITIES[role]:
                return True
    granted_by = RELATION_GRANTS.get(capability, frozenset())
    return bool(granted_by & relations_of(ctx, case))


def capabilities_for(ctx: AuthContext, case: CaseParties | None = None) -> set[Capability]:
    return {capability for capability in Capability if has_capability(ctx, capability, case)}


def authorize(ctx: AuthContext, capability: Capability, case: CaseParties | None = None) -> None:
    """Raise CapabilityDeniedError unless the caller holds `capability` (optionally relative to `case`)."""

    if has_capability(ctx, capability, case):
        return

    observe_capability_denied(capability.value)
    audit.record(
        actor_user_id=ctx.user_id,
        entity_type="security.capability",
        entity_id=str(getattr(case, "id", "none")),
        action="capability.denied",
        before=None,
        after={
            "capability": capability.value,
            "roles": list(ctx.roles),
            "tenant_id": ctx.tenant_id,
        },
        correlation_id=ctx.correlation_id,
    )
    raise CapabilityDeniedError(capability.value, ctx.user_id)
