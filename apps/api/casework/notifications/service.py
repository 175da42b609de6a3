from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import Select, or_, select
from sqlalchemy.orm import Session

from casework.cases.models import utcnow
from casework.metrics import observe_notification_created
from casework.notifications.models import Notification
from casework.notifications.schemas import NotificationRead
from casework.platform.security.capabilities import Role, roles_of
from casework.platform.security.context import AuthContext

logger = logging.getLogger("casework.notifications")


@dataclass(frozen=True, slots=True)
class _Recipient:
    user_id: str | None = None
    role: str | None = None


def _recipients_for(envelope: dict[str, Any]) -> list[tuple[_Recipient, str, str]]:
    event_type = envelope.get("event_type")
    title = envelope.get("case_title") or "Case"
    head = envelope.get("project_head_id")
    client = envelope.get("client_id")
    payload = envelope.get("payload") or {}

    planned: list[tuple[_Recipient, str, str]] = []
    if event_type == "case.plan_submitted":
        planned.append((_Recipient(role=Role.SUPER_ADMIN.value), f"{title}: plan awaiting approval", "Review the submitted execution plan."))
        if client:
            planned.append((_Recipient(user_id=client), f"{title}: plan ready for your approval", "Your project plan is ready to review."))
    elif event_type == "case.plan_rejected":
        if head:
            planned.append((_Recipient(user_id=head), f"{title}: plan rejected", str(payload.get("reason") or "")))
    elif event_type == "case.execution_activated":
        if head:
            planned.append((_Recipient(user_id=head), f"{title}: execution started", "Both approvals are in. Daily logs are now open."))
    elif event_type == "case.jms_launched":
        if client:
            planned.append((_Recipient(user_id=client), f"{title}: JMS ready to sign", "Review and sign the joint measurement sheet."))
    elif event_type == "case.completed":
        if head:
            planned.append((_Recipient(user_id=head), f"{title}: project completed", "The client signed the JMS."))
        planned.append((_Recipient(role=Role.ACCOUNTS_TEAM.value), f"{title}: project completed", "Close out payments for this case."))
    return planned


@dataclass(slots=True)
class NotificationService:
    def notify(
        self,
        session: Session,
        *,
        tenant_id: str,
        organization_id: str,
        kind: str,
        title: str,
        body: str,
        recipient_user_id: str | None = None,
        recipient_role: str | None = None,
        case_id: uuid.UUID | None = None,
        dedupe_key: str | None = None,
    ) -> Notification | None:
        """Stage a notification; returns None when one with `dedupe_key` already exists."""

        if recipient_user_id is None and recipient_role is None:
            raise ValueError("notification needs a recipient user or role")
        if dedupe_key is not None:
            existing = session.scalar(select(Notification.id).where(Notification.dedupe_key == dedupe_key))
            if existing is not None:
                return None

        notification = Notification(
            tenant_id=tenant_id,
            organization_id=organization_id,
            recipient_user_id=recipient_user_id,
            recipient_role=recipient_role,
            kind=kind,
            title=title,
            body=body,
            case_id=case_id,
            dedupe_key=dedupe_key,
        )
        session.add(notification)
        session.flush()
        observe_notification_created(kind)
        return notification

    def handle_case_event(self, session: Session, envelope: dict[str, Any]) -> int:
        planned = _recipients_for(envelope)
        if not planned:
            return 0

        case_id = uuid.UUID(str(envelope["case_id"]))
        event_id = envelope.get("event_id")
        created = 0
        for recipient, title, body in planned:
            target = recipient.user_id or f"role:{recipient.role}"
            notification = self.notify(
                session,
                tenant_id=str(envelope.get("tenant_id") or ""),
                organization_id=str(envelope.get("organization_id") or ""),
                kind=str(envelope["event_type"]),
                title=title,
                body=body,
                recipient_user_id=recipient.user_id,
                recipient_role=recipient.role,
                case_id=case_id,
                dedupe_key=f"{event_id}:{target}" if event_id else None,
            )
            if notification is not None:
                created += 1
        session.commit()
        logger.info(
            "notifications.created",
            extra={"event_name": envelope.get("event_type"), "case_id": str(case_id), "notified": created},
        )
        return created

    def list_for_user(self, session: Session, ctx: AuthContext, *, unread_only: bool = False) -> list[NotificationRead]:
        stmt = self._addressed_to(select(Notification), ctx)
        if unread_only:
            stmt = stmt.where(Notification.read_at.is_(None))
        rows = session.scalars(stmt.order_by(Notification.created_at.desc())).all()
        return [NotificationRead.model_validate(item) for item in rows]

    def mark_read(self, session: Session, ctx: AuthContext, notification_id: uuid.UUID) -> NotificationRead:
        stmt = self._addressed_to(select(Notification).where(Notification.id == notification_id), ctx)
        notification = session.scalar(stmt)
        if notification is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="notification not found")
        if notification.read_at is None:
            notification.read_at = utcnow()
            session.commit()
            session.refresh(notification)
        return NotificationRead.model_validate(notification)

    def _addressed_to(self, stmt: Select[tuple[Notification]], ctx: AuthContext) -> Select[tuple[Notification]]:
        role_values = sorted(role.value for role in roles_of(ctx))
        conditions = [Notification.recipient_user_id == ctx.user_id]
        if role_values:
            conditions.append(Notification.recipient_role.in_(role_values))
        stmt = stmt.where(or_(*conditions))
        if ctx.organization_scope:
            stmt = stmt.where(Notification.organization_id.in_(ctx.organization_scope))
        return stmt


notification_service = NotificationService()
