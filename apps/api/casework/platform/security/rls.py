"""Organization scoping for case, finance and ledger rows.

Callers carry an optional organization allow-list (``x-allowed-organizations``).
An empty list means no restriction. Reads outside the list are filtered out of
queries so they surface as 404; writes outside it raise ``AuthorizationError``.
Every denial is counted and audited as ``rls.denied``.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.sql import Select

from casework import audit
from casework.metrics import observe_rls_denied_read, observe_rls_denied_write
from casework.platform.security.context import AuthContext
from casework.platform.security.errors import AuthorizationError


ADMIN_ROLES = frozenset({"admin", "super_admin", "system.admin"})


def is_admin_bypass(ctx: AuthContext) -> bool:
    return ctx.is_super_admin or any(item.lower() in ADMIN_ROLES for item in ctx.roles)


def organization_scope(ctx: AuthContext) -> frozenset[str] | None:
    """The organizations the caller is confined to, or None when unrestricted."""

    if is_admin_bypass(ctx):
        return None
    scope = frozenset(value for value in ctx.organization_scope if value)
    return scope or None


def apply_rls_filter(query: Select[Any], resource: str, ctx: AuthContext) -> Select[Any]:
    scope = organization_scope(ctx)
    if scope is None:
        return query

    for description in query.column_descriptions:
        model = description.get("entity")
        if model is not None and hasattr(model, "organization_id"):
            query = query.where(model.organization_id.in_(scope))
    return query


def validate_rls_write(
    resource: str,
    payload: dict[str, Any],
    ctx: AuthContext,
    *,
    action: str = "write",
    existing_scope: dict[str, str | None] | None = None,
) -> None:
    scope = organization_scope(ctx)
    if scope is None:
        return

    organization_id = payload.get("organization_id")
    if organization_id is None and existing_scope is not None:
        organization_id = existing_scope.get("organization_id")
    if organization_id is not None and str(organization_id) not in scope:
        _deny(resource, action, str(organization_id), ctx, is_read=False)


def validate_rls_read_scope(
    resource: str,
    ctx: AuthContext,
    *,
    organization_id: str | None,
    action: str = "read",
) -> None:
    """Check one already loaded row, for lookups that bypass the query filter."""

    scope = organization_scope(ctx)
    if scope is not None and organization_id is not None and organization_id not in scope:
        _deny(resource, action, organization_id, ctx, is_read=True)


def _deny(resource: str, action: str, organization_id: str, ctx: AuthContext, *, is_read: bool) -> None:
    if is_read:
        observe_rls_denied_read(resource=resource, scope_type="organization")
    else:
        observe_rls_denied_write(resource=resource, scope_type="organization")

    audit.record(
        actor_user_id=ctx.user_id,
        entity_type="security.rls",
        entity_id=organization_id,
        action="rls.denied",
        before=None,
        after={"resource": resource, "action": action, "organization_id": organization_id},
        correlation_id=ctx.correlation_id,
    )
    raise AuthorizationError(f"Out-of-scope organization for resource '{resource}'")
