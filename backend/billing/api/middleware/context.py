"""Context Middleware: builds the RequestContext before any business router runs.

Invariants:
    - Runs for every HTTP path except the exempt (monitor) prefixes
    - The context is attached to request.state.ctx before calling the next stage
    - A failing build is answered here with the translated {"message"} response;
      the router is never reached
    - Exempt requests never carry a context
"""

import logging
from typing import Sequence

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from billing.core.errors import GatewayError, MountError
from billing.core.fault_translator import FaultTranslator
from billing.core.request_context import ContextBuilder

logger = logging.getLogger(__name__)

CONTEXT_STATE_KEY = "ctx"


def path_has_prefix(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


class RequestContextMiddleware:
    def __init__(
        self,
        app: ASGIApp,
        builder: ContextBuilder,
        translator: FaultTranslator,
        exempt_prefixes: Sequence[str] = (),
    ):
        if any(p in ("", "/") for p in exempt_prefixes):
            raise MountError("The root prefix cannot be exempt from context construction")
        self.app = app
        self.builder = builder
        self.translator = translator
        self.exempt_prefixes = tuple(exempt_prefixes)

    def is_exempt(self, path: str) -> bool:
        return any(path_has_prefix(path, p) for p in self.exempt_prefixes)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or self.is_exempt(scope["path"]):
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        try:
            ctx = await self.builder.build(request)
        except Exception as exc:
            fault = self.translator.handle(exc)
            extra = exc.to_log_extra() if isinstance(exc, GatewayError) else {}
            logger.error(
                f"Context construction failed on {scope['path']}: {exc!r}",
                exc_info=True,
                extra={
                    **extra,
                    "path": scope["path"],
                    "method": scope.get("method"),
                    "status_code": fault.code,
                },
            )
            response = JSONResponse(fault.to_response(), status_code=fault.code)
            await response(scope, receive, send)
            return

        setattr(request.state, CONTEXT_STATE_KEY, ctx)
        logger.debug("Request context attached", extra=ctx.log_extra())
        await self.app(scope, receive, send)
