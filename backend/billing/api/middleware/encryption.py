"""Response Encryption Interceptor: encrypts every outbound HTTP response body.

Invariants:
    - A fresh EncryptingSender wraps the ASGI send callable for each request
    - The encryptor is called exactly once per response, on the complete body
    - The original send only ever receives the encrypted payload (no partial bodies)
    - Handlers never see encryption: they keep returning plain data
    - Encryption failures are not caught here; they propagate to the
      last-resort error boundary
    - Statuses without a body (1xx, 204, 304) and empty bodies pass through
      without encryption and without the "Starting encryption" /
      "Encryption completed" log pair
    - Until the first byte reaches the server, a new http.response.start
      replaces the buffered response (the fault boundary relies on this)
    - Non-HTTP scopes pass through untouched

Design Decisions:
    - Pure ASGI middleware: responses written by inner middleware pass through
      the same sender as handler responses
    - http.response.pathsend is hidden from inner apps; file responses stream
      their bytes through the sender
"""

import logging
import time
from datetime import datetime, timezone

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from billing.core.encryption import ResponseEncryptor

logger = logging.getLogger(__name__)

ENCRYPTION_HEADER = b"x-body-encryption"
ORIGINAL_CONTENT_TYPE_HEADER = b"x-original-content-type"
ENCRYPTED_CONTENT_TYPE = b"text/plain; charset=utf-8"

_REPLACED_HEADERS = {b"content-length", b"content-type", ENCRYPTION_HEADER, ORIGINAL_CONTENT_TYPE_HEADER}


def _allows_body(status: int) -> bool:
    return status >= 200 and status not in (204, 304)


class EncryptingSender:
    """Per-request replacement for the ASGI send callable.

    ``flushed`` turns True once any message reached the wrapped send; until
    then a new ``http.response.start`` discards the buffered response.
    """

    def __init__(self, send: Send, encryptor: ResponseEncryptor, path: str = ""):
        self._send = send
        self._encryptor = encryptor
        self._path = path
        self._start: Message | None = None
        self._chunks: list[bytes] = []
        self._passthrough = False
        self.flushed = False

    async def __call__(self, message: Message) -> None:
        message_type = message["type"]

        if message_type == "http.response.start":
            self._start = message
            self._chunks = []
            self._passthrough = not _allows_body(message["status"])
            if self._passthrough:
                await self._forward(message)
            return

        if message_type != "http.response.body" or self._passthrough:
            await self._forward(message)
            return

        self._chunks.append(message.get("body", b""))
        if message.get("more_body", False):
            return

        body = b"".join(self._chunks)
        self._chunks = []
        if not body:
            await self._forward(self._start)
            await self._forward(message)
            return

        await self._send_encrypted(body)

    async def _forward(self, message: Message) -> None:
        self.flushed = True
        await self._send(message)

    async def _send_encrypted(self, body: bytes) -> None:
        extra = {"path": self._path}
        started_at = time.perf_counter()
        logger.info(
            f"Starting encryption: {datetime.now(timezone.utc).isoformat()}",
            extra=extra,
        )
        encrypted = self._encryptor.encrypt(body)
        logger.info(
            f"Encryption completed: {datetime.now(timezone.utc).isoformat()}",
            extra={
                **extra,
                "duration_ms": round((time.perf_counter() - started_at) * 1000, 3),
            },
        )

        await self._forward(self._encrypted_start(len(encrypted)))
        await self._forward({
            "type": "http.response.body",
            "body": encrypted,
            "more_body": False,
        })

    def _encrypted_start(self, content_length: int) -> Message:
        original = self._start["headers"] if self._start else []
        headers = [(k, v) for k, v in original if k.lower() not in _REPLACED_HEADERS]
        for k, v in original:
            if k.lower() == b"content-type":
                headers.append((ORIGINAL_CONTENT_TYPE_HEADER, v))
                break
        headers.extend([
            (b"content-type", ENCRYPTED_CONTENT_TYPE),
            (b"content-length", str(content_length).encode("latin-1")),
            (ENCRYPTION_HEADER, self._encryptor.algorithm.encode("latin-1")),
        ])
        return {**self._start, "headers": headers}


class ResponseEncryptionMiddleware:
    """Installs an EncryptingSender around every HTTP response."""

    def __init__(self, app: ASGIApp, encryptor: ResponseEncryptor):
        self.app = app
        self.encryptor = encryptor

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        extensions = scope.get("extensions") or {}
        if "http.response.pathsend" in extensions:
            extensions = {k: v for k, v in extensions.items() if k != "http.response.pathsend"}
            scope = {**scope, "extensions": extensions}

        sender = EncryptingSender(send, self.encryptor, path=scope.get("path", ""))
        await self.app(scope, receive, sender)
