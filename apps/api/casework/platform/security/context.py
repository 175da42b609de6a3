from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class AuthContext:
    """Caller identity and scope used by capability checks and row-level filters."""

    user_id: str
    tenant_id: str | None = None
    correlation_id: str | None = None
    is_super_admin: bool = False
    roles: list[str] = field(default_factory=list)
    organization_scope: list[str] = field(default_factory=list)
    display_name: str | None = None
