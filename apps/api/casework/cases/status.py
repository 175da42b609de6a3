"""Case status ordering and the pure predicates used across the workspace."""

from __future__ import annotations

from enum import StrEnum


class CaseStatus(StrEnum):
    LEAD = "LEAD"
    CONTACTED = "CONTACTED"
    SITE_VISIT = "SITE_VISIT"
    DRAWING = "DRAWING"
    BOQ = "BOQ"
    QUOTATION = "QUOTATION"
    NEGOTIATION = "NEGOTIATION"
    WAITING_FOR_PAYMENT = "WAITING_FOR_PAYMENT"
    WAITING_FOR_PLANNING = "WAITING_FOR_PLANNING"
    PLANNING_SUBMITTED = "PLANNING_SUBMITTED"
    EXECUTION_ACTIVE = "EXECUTION_ACTIVE"
    COMPLETED = "COMPLETED"


STATUS_ORDER: tuple[CaseStatus, ...] = tuple(CaseStatus)

# Furthest status the sales pipeline may move a case to; later ones belong to execution.
SALES_PIPELINE_LIMIT = CaseStatus.WAITING_FOR_PLANNING

STATUS_LABELS: dict[CaseStatus, str] = {
    CaseStatus.LEAD: "Lead",
    CaseStatus.CONTACTED: "Contacted",
    CaseStatus.SITE_VISIT: "Site Visit",
    CaseStatus.DRAWING: "Drawing",
    CaseStatus.BOQ: "BOQ",
    CaseStatus.QUOTATION: "Quotation",
    CaseStatus.NEGOTIATION: "Negotiation",
    CaseStatus.WAITING_FOR_PAYMENT: "Waiting for Payment",
    CaseStatus.WAITING_FOR_PLANNING: "Waiting for Planning",
    CaseStatus.PLANNING_SUBMITTED: "Planning Submitted",
    CaseStatus.EXECUTION_ACTIVE: "Execution Active",
    CaseStatus.COMPLETED: "Completed",
}


def parse_status(value: str | CaseStatus | None) -> CaseStatus | None:
    if value is None:
        return None
    try:
        return CaseStatus(value)
    except ValueError:
        return None


def is_case_completed(status: str | CaseStatus | None) -> bool:
    return status == CaseStatus.COMPLETED


def is_planning_locked(status: str | CaseStatus | None) -> bool:
    return status != CaseStatus.WAITING_FOR_PLANNING


def status_rank(status: str | CaseStatus) -> int:
    parsed = parse_status(status)
    if parsed is None:
        raise ValueError(f"unknown case status: {status!r}")
    return STATUS_ORDER.index(parsed)


def is_forward_transition(current: str | CaseStatus, target: str | CaseStatus) -> bool:
    return status_rank(target) > status_rank(current)


def is_sales_stage(status: str | CaseStatus) -> bool:
    return status_rank(status) <= status_rank(SALES_PIPELINE_LIMIT)
