"""Webhook Routes: public endpoint receiving provider events."""

import logging

from fastapi import APIRouter, Depends

from billing.api.dependencies import get_request_context
from billing.core.request_context import RequestContext

logger = logging.getLogger(__name__)
router = APIRouter(tags=["webhook"])

public_routes = ["/"]


@router.post("")
async def receive_event(
    event: dict, ctx: RequestContext = Depends(get_request_context),
):
    logger.info(
        f"Webhook event received: {event.get('type', 'unknown')}",
        extra=ctx.log_extra(),
    )
    return {"received": True, "policy": ctx.route_policy.value}
