from __future__ import annotations

from typing import Any

from sqlalchemy.sql import Select

from casework.platform.security.context import AuthContext
from casework.platform.security.rls import apply_rls_filter, validate_rls_read_scope, validate_rls_write


class BaseRepository:
    """Organization scoping shared by the case, finance and ledger repositories."""

    resource = ""

    def apply_scope_query(self, query: Select[Any], ctx: AuthContext) -> Select[Any]:
        return apply_rls_filter(query, self.resource, ctx)

    def validate_write_security(
        self,
        payload: dict[str, Any],
        ctx: AuthContext,
        *,
        existing_scope: dict[str, str | None] | None = None,
        action: str = "write",
    ) -> None:
        validate_rls_write(self.resource, payload, ctx, existing_scope=existing_scope, action=action)

    def validate_read_scope(self, ctx: AuthContext, *, organization_id: str | None, action: str = "read") -> None:
        validate_rls_read_scope(self.resource, ctx, organization_id=organization_id, action=action)
