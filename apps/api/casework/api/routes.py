from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from casework.case_tasks.api import router as case_tasks_router
from casework.cases.api import router as cases_router
from casework.core.config import get_settings
from casework.documents.api import router as documents_router
from casework.execution.api import router as execution_router
from casework.finance.api import router as finance_router
from casework.metrics import generate_metrics_payload, metrics_content_type
from casework.notifications.api import router as notifications_router
from casework.platform.ledger.api import router as ledger_router
from casework.platform.security.capabilities import Capability, capabilities_for, has_capability
from casework.platform.security.context import AuthContext
from casework.platform.security.dependencies import get_auth_context

router = APIRouter()
router.include_router(cases_router)
router.include_router(execution_router)
router.include_router(documents_router)
router.include_router(case_tasks_router)
router.include_router(finance_router)
router.include_router(ledger_router)
router.include_router(notifications_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/me", tags=["auth"])
async def me(ctx: AuthContext = Depends(get_auth_context)) -> dict[str, str | list[str] | None]:
    return {
        "sub": ctx.user_id,
        "name": ctx.display_name,
        "roles": ctx.roles,
        "capabilities": sorted(item.value for item in capabilities_for(ctx)),
    }


@router.get("/metrics", tags=["system"])
def metrics(ctx: AuthContext = Depends(get_auth_context)) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    if not has_capability(ctx, Capability.METRICS_READ) and Capability.METRICS_READ.value not in ctx.roles:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Missing permission: system.metrics.read")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
