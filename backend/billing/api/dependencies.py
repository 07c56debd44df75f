"""FastAPI dependencies shared by the business routers."""

from fastapi import Request

from billing.api.middleware.context import CONTEXT_STATE_KEY
from billing.core.errors import ContextMissingError, ErrorContext
from billing.core.request_context import RequestContext


async def get_request_context(request: Request) -> RequestContext:
    ctx = getattr(request.state, CONTEXT_STATE_KEY, None)
    if ctx is None:
        raise ContextMissingError(
            request.url.path, ErrorContext(path=request.url.path),
        )
    return ctx
