"""Payment Routes: thin placeholder handlers over the request context."""

from fastapi import APIRouter, Depends, status

from billing.api.dependencies import get_request_context
from billing.core.request_context import RequestContext

router = APIRouter(tags=["payment"])

admin_routes = ["/refund"]


@router.get("")
async def list_payments(ctx: RequestContext = Depends(get_request_context)):
    return {
        "resource": "payment",
        "tenant_id": ctx.tenant_id,
        "policy": ctx.route_policy.value,
        "items": [],
    }


@router.post("/refund", status_code=status.HTTP_202_ACCEPTED)
async def request_refund(
    payload: dict, ctx: RequestContext = Depends(get_request_context),
):
    return {
        "accepted": True,
        "resource": "payment",
        "request_id": ctx.request_id,
        "policy": ctx.route_policy.value,
    }
