from contextlib import asynccontextmanager, contextmanager
import logging
from typing import Any

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from casework.api.routes import router as api_router
from casework.core.config import get_settings
from casework.core.database import SessionLocal, get_db
from casework.core.events import InternalEvent, event_bus
from casework.logging import configure_logging
from casework.middleware.correlation_id import CorrelationIdMiddleware
from casework.middleware.request_logging import RequestLoggingMiddleware
from casework.notifications.service import notification_service
from casework.otel import get_fastapi_server_request_hook, setup_otel


configure_logging()
logger = logging.getLogger("casework.lifecycle")
_subscriptions_registered = False

CASE_EVENT_TYPES = [
    "case.plan_submitted",
    "case.plan_rejected",
    "case.execution_activated",
    "case.jms_launched",
    "case.completed",
]


def _on_system_started(event: InternalEvent) -> None:
    logger.info("system_event", extra={"event_name": event.name})


@contextmanager
def _event_session_scope():
    override = app.dependency_overrides.get(get_db) if "app" in globals() else None
    if override is None:
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()
        return

    generator = override()
    session = next(generator)
    try:
        yield session
    finally:
        try:
            next(generator)
        except StopIteration:
            pass


def _on_case_event(event: InternalEvent) -> None:
    if not isinstance(event.payload, dict):
        return
    envelope: dict[str, Any] = event.payload
    try:
        with _event_session_scope() as session:
            try:
                notification_service.handle_case_event(session, envelope)
            except Exception:
                session.rollback()
                raise
    except Exception as exc:
        logger.exception("notification_dispatch_failed", extra={"event_name": event.name, "error": str(exc)[:500]})


def register_subscriptions() -> None:
    global _subscriptions_registered
    if _subscriptions_registered:
        return
    event_bus.subscribe("system.started", _on_system_started)
    for event_name in CASE_EVENT_TYPES:
        event_bus.subscribe(event_name, _on_case_event)
    _subscriptions_registered = True


@asynccontextmanager
async def lifespan(app: FastAPI):
    register_subscriptions()
    event_bus.publish("system.started", {"service": "api"})
    yield


app = FastAPI(title="Casework API", version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(api_router)

settings = get_settings()
if settings.otel_enabled:
    setup_otel("api", True)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
