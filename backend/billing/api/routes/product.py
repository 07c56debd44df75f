"""Product Routes: thin placeholder handlers over the request context."""

from fastapi import APIRouter, Depends, status

from billing.api.dependencies import get_request_context
from billing.core.request_context import RequestContext

router = APIRouter(tags=["product"])

admin_routes = ["/create"]


@router.get("")
async def list_products(ctx: RequestContext = Depends(get_request_context)):
    return {
        "resource": "product",
        "tenant_id": ctx.tenant_id,
        "policy": ctx.route_policy.value,
        "items": [],
    }


@router.post("/create", status_code=status.HTTP_202_ACCEPTED)
async def create_product(
    payload: dict, ctx: RequestContext = Depends(get_request_context),
):
    return {
        "accepted": True,
        "resource": "product",
        "request_id": ctx.request_id,
        "policy": ctx.route_policy.value,
    }
