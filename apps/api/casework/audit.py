from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from casework.context import get_correlation_id

logger = logging.getLogger("casework.audit")

audit_entries: list[dict[str, Any]] = []


def record(
    actor_user_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
    correlation_id: str | None = None,
) -> None:
    """Append a security-relevant audit entry and mirror it to the audit logger."""

    entry = {
        "id": str(uuid.uuid4()),
        "actor_user_id": actor_user_id,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "action": action,
        "before": before,
        "after": after,
        "correlation_id": correlation_id or get_correlation_id(),
        "occurred_at": datetime.now(timezone.utc).isoformat(),
    }
    audit_entries.append(entry)
    logger.info("audit.%s", action, extra={"event_name": action})


def clear() -> None:
    audit_entries.clear()
