from __future__ import annotations

from fastapi import Depends, Header, HTTPException, Request, status

from casework.context import get_correlation_id, set_actor_id
from casework.core.auth import AuthUser, get_current_user as get_auth_user
from casework.platform.security.capabilities import Capability, CaseParties, authorize
from casework.platform.security.context import AuthContext
from casework.platform.security.errors import AuthorizationError


def _parse_str_list(raw: str | None) -> list[str]:
    if raw is None:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


async def get_auth_context(
    request: Request,
    auth_user: AuthUser = Depends(get_auth_user),
    tenant_id_header: str | None = Header(default=None, alias="x-tenant-id"),
    organization_scope_header: str | None = Header(default=None, alias="x-allowed-organizations"),
) -> AuthContext:
    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    roles = [str(item) for item in auth_user.roles]
    normalized = {item.lower() for item in roles}
    set_actor_id(auth_user.sub)

    return AuthContext(
        user_id=auth_user.sub,
        tenant_id=tenant_id_header,
        correlation_id=correlation_id,
        is_super_admin=bool(normalized & {"admin", "super_admin", "system.admin"}),
        roles=roles,
        organization_scope=_parse_str_list(organization_scope_header),
        display_name=auth_user.name,
    )


def forbidden(exc: AuthorizationError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))


def enforce(ctx: AuthContext, capability: Capability, case: CaseParties | None = None) -> None:
    """`authorize` for service code: denials surface as HTTP 403."""

    try:
        authorize(ctx, capability, case)
    except AuthorizationError as exc:
        raise forbidden(exc)
