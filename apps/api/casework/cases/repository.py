from __future__ import annotations

import uuid
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import Select, or_, select
from sqlalchemy.orm import Session

from casework.cases.models import Case, CaseActivity
from casework.platform.security.context import AuthContext
from casework.platform.security.errors import AuthorizationError
from casework.platform.security.repository import BaseRepository


class CaseRepository(BaseRepository):
    resource = "cases.case"

    def get(self, session: Session, ctx: AuthContext, case_id: uuid.UUID, *, for_update: bool = False) -> Case | None:
        stmt: Select[tuple[Case]] = select(Case).where(Case.id == case_id)
        if for_update:
            stmt = stmt.with_for_update()
        return session.scalar(self.apply_scope_query(stmt, ctx))

    def get_or_404(self, session: Session, ctx: AuthContext, case_id: uuid.UUID, *, for_update: bool = False) -> Case:
        case = self.get(session, ctx, case_id, for_update=for_update)
        if case is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="case not found")
        try:
            self.validate_read_scope(ctx, organization_id=case.organization_id)
        except AuthorizationError as exc:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
        return case

    def list(
        self,
        session: Session,
        ctx: AuthContext,
        *,
        tenant_id: str | None = None,
        organization_id: str | None = None,
        statuses: list[str] | None = None,
        project_head_id: str | None = None,
        client_id: str | None = None,
        party_id: str | None = None,
    ) -> list[Case]:
        stmt: Select[tuple[Case]] = select(Case)
        if tenant_id is not None:
            stmt = stmt.where(Case.tenant_id == tenant_id)
        if organization_id is not None:
            stmt = stmt.where(Case.organization_id == organization_id)
        if statuses:
            stmt = stmt.where(Case.status.in_(statuses))
        if project_head_id is not None:
            stmt = stmt.where(Case.project_head_id == project_head_id)
        if client_id is not None:
            stmt = stmt.where(Case.client_id == client_id)
        if party_id is not None:
            stmt = stmt.where(or_(Case.project_head_id == party_id, Case.client_id == party_id))
        stmt = self.apply_scope_query(stmt, ctx)
        return list(session.scalars(stmt.order_by(Case.created_at.desc())).all())

    def add_activity(
        self,
        session: Session,
        case_id: uuid.UUID,
        *,
        action: str,
        message: str,
        actor_id: str,
        details: dict[str, Any] | None = None,
    ) -> CaseActivity:
        activity = CaseActivity(case_id=case_id, action=action, message=message, actor_id=actor_id, details=details)
        session.add(activity)
        return activity

    def list_activities(self, session: Session, case_id: uuid.UUID) -> list[CaseActivity]:
        return list(
            session.scalars(
                select(CaseActivity)
                .where(CaseActivity.case_id == case_id)
                .order_by(CaseActivity.occurred_at.desc(), CaseActivity.id)
            ).all()
        )


case_repository = CaseRepository()
