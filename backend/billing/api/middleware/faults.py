"""Terminal Fault Handler: converts faults escaping the routers into {"message"} responses.

Invariants:
    - Sits directly inside the encryption interceptor, so its responses are encrypted
    - Every caught fault is logged raw, then translated by the FaultTranslator
    - Response body is always {"message": str} with the translated status
    - EncryptionError is re-raised: it belongs to the last-resort boundary
    - A fault is re-raised only once response bytes reached the server; a
      response that started but is still buffered by the interceptor is
      replaced by the translated one
"""

import logging

from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from billing.core.errors import EncryptionError, GatewayError
from billing.core.fault_translator import FaultTranslator

logger = logging.getLogger(__name__)


class FaultBoundaryMiddleware:
    def __init__(self, app: ASGIApp, translator: FaultTranslator):
        self.app = app
        self.translator = translator

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, tracking_send)
        except EncryptionError:
            raise
        except Exception as exc:
            # EncryptingSender reports what reached the server; any other send
            # is committed as soon as the response started.
            if getattr(send, "flushed", response_started):
                raise
            fault = self.translator.handle(exc)
            extra = exc.to_log_extra() if isinstance(exc, GatewayError) else {}
            logger.error(
                f"Request failed on {scope.get('path', '')}: {exc!r}",
                exc_info=True,
                extra={**extra, "path": scope.get("path"), "status_code": fault.code},
            )
            response = JSONResponse(fault.to_response(), status_code=fault.code)
            await response(scope, receive, send)
