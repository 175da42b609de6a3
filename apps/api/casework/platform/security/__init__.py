from casework.platform.security.capabilities import (
    Capability,
    Relation,
    Role,
    authorize,
    capabilities_for,
    has_capability,
    normalize_role,
)
from casework.platform.security.context import AuthContext
from casework.platform.security.errors import AuthorizationError, CapabilityDeniedError
from casework.platform.security.repository import BaseRepository
from casework.platform.security.rls import apply_rls_filter, validate_rls_read_scope, validate_rls_write

__all__ = [
    "AuthContext",
    "AuthorizationError",
    "CapabilityDeniedError",
    "BaseRepository",
    "Capability",
    "Relation",
    "Role",
    "authorize",
    "capabilities_for",
    "has_capability",
    "normalize_role",
    "apply_rls_filter",
    "validate_rls_read_scope",
    "validate_rls_write",
]
