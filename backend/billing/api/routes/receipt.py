"""Receipt Routes: thin placeholder handlers over the request context."""

from fastapi import APIRouter, Depends

from billing.api.dependencies import get_request_context
from billing.core.request_context import RequestContext

router = APIRouter(tags=["receipt"])


@router.get("")
async def list_receipts(ctx: RequestContext = Depends(get_request_context)):
    return {
        "resource": "receipt",
        "tenant_id": ctx.tenant_id,
        "policy": ctx.route_policy.value,
        "items": [],
    }
