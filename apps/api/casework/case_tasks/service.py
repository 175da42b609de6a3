from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from casework.case_tasks.models import OPEN_TASK_STATUSES, TASK_TRANSITIONS, CaseTask, TaskStatus, TaskType
from casework.case_tasks.repository import CaseTaskRepository
from casework.case_tasks.schemas import AssignedTaskRead, TaskAssignRequest, TaskCreate, TaskRead, TaskStatusUpdate
from casework.cases.models import Case, utcnow
from casework.cases.repository import CaseRepository
from casework.cases.service import ensure_not_completed
from casework.notifications.service import NotificationService
from casework.platform.security.capabilities import Capability, has_capability
from casework.platform.security.context import AuthContext
from casework.platform.security.dependencies import enforce

logger = logging.getLogger("casework.tasks")

_TIMESTAMP_FIELDS: dict[TaskStatus, str] = {
    TaskStatus.STARTED: "started_at",
    TaskStatus.COMPLETED: "completed_at",
    TaskStatus.ACKNOWLEDGED: "acknowledged_at",
}


def _label(task_type: str) -> str:
    return task_type.replace("_", " ")


@dataclass(slots=True)
class CaseTaskService:
    """Work items on a case: assigned by a lead, worked by the assignee, acknowledged by the assigner."""

    case_repository: CaseRepository = CaseRepository()
    repository: CaseTaskRepository = CaseTaskRepository()
    notification_service: NotificationService = field(default_factory=NotificationService)

    def create_task(self, session: Session, ctx: AuthContext, case_id: uuid.UUID, request: TaskCreate) -> TaskRead:
        case = self.case_repository.get_or_404(session, ctx, case_id, for_update=True)
        enforce(ctx, Capability.TASK_ASSIGN, case)
        ensure_not_completed(case)
        assignee = request.assigned_to.strip()
        if not assignee:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="assigned_to is required")

        task = CaseTask(
            case_id=case.id,
            organization_id=case.organization_id,
            task_type=request.task_type.value,
            status=TaskStatus.PENDING.value,
            assigned_to=assignee,
            assigned_by=ctx.user_id,
            notes=request.notes,
            deadline=request.deadline,
        )
        session.add(task)
        session.flush()
        self.case_repository.add_activity(
            session,
            case.id,
            action="tasks.created",
            message=f"Task created: {_label(task.task_type)}",
            actor_id=ctx.user_id,
            details={"task_id": str(task.id), "assigned_to": assignee},
        )
        self._notify_assignee(session, case, task)
        session.commit()
        session.refresh(task)
        return TaskRead.model_validate(task)

    def reassign_task(
        self,
        session: Session,
        ctx: AuthContext,
        task_id: uuid.UUID,
        request: TaskAssignRequest,
    ) -> TaskRead:
        task = self.repository.get_or_404(session, ctx, task_id)
        case = self.case_repository.get_or_404(session, ctx, task.case_id, for_update=True)
        enforce(ctx, Capability.TASK_ASSIGN, case)
        ensure_not_completed(case)
        if TaskStatus(task.status) not in OPEN_TASK_STATUSES:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="only open tasks can be reassigned")

        assignee = request.assigned_to.strip()
        if not assignee:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="assigned_to is required")
        if assignee == task.assigned_to:
            return TaskRead.model_validate(task)

        previous = task.assigned_to
        task.assigned_to = assignee
        task.status = TaskStatus.PENDING.value
        task.started_at = None
        self.case_repository.add_activity(
            session,
            case.id,
            action="tasks.reassigned",
            message=f"Task reassigned: {_label(task.task_type)}",
            actor_id=ctx.user_id,
            details={"task_id": str(task.id), "from": previous, "to": assignee},
        )
        self._notify_assignee(session, case, task)
        session.commit()
        session.refresh(task)
        return TaskRead.model_validate(task)

    def update_status(
        self,
        session: Session,
        ctx: AuthContext,
        task_id: uuid.UUID,
        request: TaskStatusUpdate,
    ) -> TaskRead:
        task = self.repository.get_or_404(session, ctx, task_id)
        case = self.case_repository.get_or_404(session, ctx, task.case_id, for_update=True)
        ensure_not_completed(case)

        current = TaskStatus(task.status)
        target = request.status
        if target == TaskStatus.ACKNOWLEDGED:
            if ctx.user_id != task.assigned_by and not has_capability(ctx, Capability.TASK_ASSIGN, case):
                raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="only the assigner can acknowledge a task")
        elif ctx.user_id != task.assigned_to:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="only the assignee can work on a task")

        if target not in TASK_TRANSITIONS[current]:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"task cannot move from {current.value} to {target.value}",
            )
        if request.km_travelled is not None:
            if target != TaskStatus.COMPLETED:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="km_travelled is recorded on completion only",
                )
            task.km_travelled = request.km_travelled

        task.status = target.value
        setattr(task, _TIMESTAMP_FIELDS[target], utcnow())
        self.case_repository.add_activity(
            session,
            case.id,
            action="tasks.status_changed",
            message=f"Task {target.value}: {_label(task.task_type)}",
            actor_id=ctx.user_id,
            details={"task_id": str(task.id), "from_status": current.value, "to_status": target.value},
        )
        if target == TaskStatus.COMPLETED and task.assigned_by != ctx.user_id:
            self.notification_service.notify(
                session,
                tenant_id=case.tenant_id,
                organization_id=case.organization_id,
                kind="task.completed",
                title="Task completed",
                body=f"{_label(task.task_type).capitalize()} task on {case.title} has been completed",
                recipient_user_id=task.assigned_by,
                case_id=case.id,
            )
        session.commit()
        session.refresh(task)
        logger.info(
            "task.status_changed",
            extra={"case_id": str(case.id), "from_status": current.value, "to_status": target.value},
        )
        return TaskRead.model_validate(task)

    def list_case_tasks(
        self,
        session: Session,
        ctx: AuthContext,
        case_id: uuid.UUID,
        *,
        task_status: TaskStatus | None = None,
        task_type: TaskType | None = None,
    ) -> list[TaskRead]:
        case = self.case_repository.get_or_404(session, ctx, case_id)
        enforce(ctx, Capability.CASE_READ, case)
        rows = self.repository.list_for_case(
            session,
            case.id,
            statuses=[task_status.value] if task_status is not None else None,
            task_type=task_type.value if task_type is not None else None,
        )
        return [TaskRead.model_validate(item) for item in rows]

    def list_assigned(
        self,
        session: Session,
        ctx: AuthContext,
        *,
        open_only: bool = False,
    ) -> list[AssignedTaskRead]:
        statuses = [item.value for item in OPEN_TASK_STATUSES] if open_only else None
        rows = self.repository.list_for_assignee(session, ctx, ctx.user_id, statuses=statuses)
        return [
            AssignedTaskRead.model_validate(
                {**TaskRead.model_validate(task).model_dump(), "case_title": title, "client_name": client_name}
            )
            for task, title, client_name in rows
        ]

    def _notify_assignee(self, session: Session, case: Case, task: CaseTask) -> None:
        self.notification_service.notify(
            session,
            tenant_id=case.tenant_id,
            organization_id=case.organization_id,
            kind="task.assigned",
            title="New task assigned",
            body=f"You have been assigned a {_label(task.task_type)} task on {case.title}",
            recipient_user_id=task.assigned_to,
            case_id=case.id,
        )


case_task_service = CaseTaskService()
