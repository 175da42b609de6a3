from __future__ import annotations


class AuthorizationError(Exception):
    """Base authorization error for capability and scope enforcement failures."""


class CapabilityDeniedError(AuthorizationError):
    """Raised when the caller lacks a capability for an action."""

    def __init__(self, capability: str, user_id: str) -> None:
        self.capability = capability
        self.user_id = user_id
        super().__init__(f"User '{user_id}' is not permitted to perform '{capability}'")
