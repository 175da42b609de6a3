from __future__ import annotations

import uuid
from collections.abc import Sequence

from fastapi import HTTPException, status
from sqlalchemy import Row, Select, select
from sqlalchemy.orm import Session

from casework.case_tasks.models import CaseTask
from casework.cases.models import Case
from casework.platform.security.context import AuthContext
from casework.platform.security.repository import BaseRepository


class CaseTaskRepository(BaseRepository):
    resource = "tasks.case_task"

    def get_or_404(self, session: Session, ctx: AuthContext, task_id: uuid.UUID) -> CaseTask:
        stmt: Select[tuple[CaseTask]] = select(CaseTask).where(CaseTask.id == task_id)
        task = session.scalar(self.apply_scope_query(stmt, ctx))
        if task is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="task not found")
        return task

    def list_for_case(
        self,
        session: Session,
        case_id: uuid.UUID,
        *,
        statuses: Sequence[str] | None = None,
        task_type: str | None = None,
    ) -> list[CaseTask]:
        stmt = select(CaseTask).where(CaseTask.case_id == case_id)
        if statuses:
            stmt = stmt.where(CaseTask.status.in_(statuses))
        if task_type is not None:
            stmt = stmt.where(CaseTask.task_type == task_type)
        return list(session.scalars(stmt.order_by(CaseTask.created_at.desc(), CaseTask.id)).all())

    def list_for_assignee(
        self,
        session: Session,
        ctx: AuthContext,
        assignee_id: str,
        *,
        statuses: Sequence[str] | None = None,
    ) -> Sequence[Row[tuple[CaseTask, str, str]]]:
        """Tasks across all cases for one assignee, with the case title and client name."""

        stmt = (
            select(CaseTask, Case.title, Case.client_name)
            .join(Case, Case.id == CaseTask.case_id)
            .where(CaseTask.assigned_to == assignee_id)
        )
        if statuses:
            stmt = stmt.where(CaseTask.status.in_(statuses))
        stmt = self.apply_scope_query(stmt, ctx)
        return session.execute(stmt.order_by(CaseTask.created_at.desc(), CaseTask.id)).all()
