from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

case_transitions_total = Counter(
    "case_transitions_total",
    "Total case status transitions by target status",
    ["to_status"],
)

execution_activation_checks_total = Counter(
    "execution_activation_checks_total",
    "Execution activation checks by outcome",
    ["outcome"],
)

capability_denied_total = Counter(
    "capability_denied_total",
    "Total capability denials",
    ["capability"],
)

rls_denied_reads_count = Counter(
    "rls_denied_reads_count",
    "Total denied reads by RLS",
    ["resource", "scope_type"],
)

rls_denied_writes_count = Counter(
    "rls_denied_writes_count",
    "Total denied writes by RLS",
    ["resource", "scope_type"],
)

ledger_entries_posted_count = Counter(
    "ledger_entries_posted_count",
    "Total posted ledger entries",
)

ledger_post_failures_count = Counter(
    "ledger_post_failures_count",
    "Total ledger post failures by reason",
    ["reason"],
)

notifications_created_total = Counter(
    "notifications_created_total",
    "Total notifications created by kind",
    ["kind"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        for attribute in ("path_format", "path"):
            value = getattr(route, attribute, None)
            if isinstance(value, str) and value:
                return _PATH_PARAM_RE.sub("{id}", value)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_case_transition(to_status: str) -> None:
    case_transitions_total.labels(to_status=to_status).inc()


def observe_activation_check(outcome: str) -> None:
    execution_activation_checks_total.labels(outcome=outcome).inc()


def observe_capability_denied(capability: str) -> None:
    capability_denied_total.labels(capability=capability).inc()


def observe_rls_denied_read(resource: str, scope_type: str) -> None:
    rls_denied_reads_count.labels(resource=resource, scope_type=scope_type).inc()


def observe_rls_denied_write(resource: str, scope_type: str) -> None:
    rls_denied_writes_count.labels(resource=resource, scope_type=scope_type).inc()


def observe_ledger_entries_posted(count: int = 1) -> None:
    if count > 0:
        ledger_entries_posted_count.inc(count)


def observe_ledger_post_failure(reason: str) -> None:
    ledger_post_failures_count.labels(reason=reason).inc()


def observe_notification_created(kind: str) -> None:
    notifications_created_total.labels(kind=kind).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
