from __future__ import annotations

from fastapi import APIRouter, Request, Response, status

from luminal.core.rate_limit import get_rate_limiter
from luminal.schemas.rate_limit import HealthResponse

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
def health_check(request: Request, response: Response) -> HealthResponse:
    """Health check endpoint.

    Reports liveness plus the limiter self-check. Used by load balancers and
    monitoring; this path is exempt from rate limiting.

    Returns:
        HealthResponse: "ok" (200) or "degraded" (503) when the limiter fails
        its self-check.
    """

    if get_rate_limiter(request).is_healthy():
        return HealthResponse(status="ok", rate_limiter="ok")

    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return HealthResponse(status="degraded", rate_limiter="unavailable")
