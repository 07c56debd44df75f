"""Monitor Routes: liveness and readiness probes, mounted before context construction.

Invariants:
    - GET /monitor/health always returns 200 if the process is up (liveness)
    - GET /monitor/ready returns 503 if any persistence provider is unreachable
    - Never depends on the RequestContext (these paths are context-exempt)
"""

import asyncio
import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)
router = APIRouter(tags=["monitor"])

public_routes = ["/health", "/ready"]


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {"status": "healthy", "service": "billing-api"}


@router.get("/ready")
async def readiness_check(request: Request):
    """Readiness probe: every persistence provider must answer."""
    providers = request.app.state.gateway.providers
    results = await asyncio.gather(*(p.health_check() for p in providers))
    checks = {
        p.name: "healthy" if ok else "unavailable"
        for p, ok in zip(providers, results)
    }
    if not all(results):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
