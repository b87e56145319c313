"""
Health endpoints for load balancers and uptime checks
"""

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, Response

from leadfunnel.core.config import get_settings
from leadfunnel.core.dependencies import get_integrations
from leadfunnel.services.health import check_database, check_health
from leadfunnel.services.notifications import Integrations

router = APIRouter()

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@router.get("")
async def health_check(
    request: Request,
    integrations: Integrations = Depends(get_integrations),
):
    """Reachability of the database and every integration"""
    settings = get_settings()
    healthy, body = await check_health(
        request.app.state.session_maker,
        integrations,
        version=settings.APP_VERSION,
        timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body,
        headers=NO_CACHE_HEADERS,
    )


@router.head("")
async def health_probe(request: Request):
    """Database-only probe"""
    healthy = await check_database(
        request.app.state.session_maker, timeout=get_settings().NOTIFICATION_TIMEOUT_SECONDS
    )
    return Response(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        headers=NO_CACHE_HEADERS,
    )
