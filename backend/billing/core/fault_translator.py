"""Fault Translator: maps any raised fault to an HTTP (status, message) pair.

Invariants:
    - handle() is total: it never raises, whatever it is given
    - Unknown fault shapes map to 500 "An unexpected error occurred"
    - Status codes are always within 400..599
    - Messages of unknown faults never leak str(fault)
"""

import asyncio
import logging
from http import HTTPStatus
from dataclasses import dataclass

from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from billing.core.errors import GatewayError

logger = logging.getLogger(__name__)

GENERIC_STATUS = 500
GENERIC_MESSAGE = "An unexpected error occurred"


@dataclass(frozen=True)
class TranslatedFault:
    code: int
    message: str

    def to_response(self) -> dict:
        return {"message": self.message}


class FaultTranslator:
    """Translate faults raised anywhere in the pipeline."""

    def handle(self, fault: object) -> TranslatedFault:
        try:
            return self._translate(fault)
        except Exception:
            logger.exception("Fault translation failed; falling back to generic error")
            return TranslatedFault(GENERIC_STATUS, GENERIC_MESSAGE)

    def _translate(self, fault: object) -> TranslatedFault:
        if isinstance(fault, GatewayError):
            return TranslatedFault(_bounded(fault.http_status), fault.message)
        if isinstance(fault, StarletteHTTPException):
            detail = fault.detail if isinstance(fault.detail, str) else None
            return TranslatedFault(
                _bounded(fault.status_code), detail or _reason(fault.status_code),
            )
        if isinstance(fault, RequestValidationError):
            return TranslatedFault(400, "Invalid request data")
        if isinstance(fault, (TimeoutError, asyncio.TimeoutError)):
            return TranslatedFault(504, "Request timed out")
        return TranslatedFault(GENERIC_STATUS, GENERIC_MESSAGE)


def _bounded(status_code: object) -> int:
    if isinstance(status_code, int) and 400 <= status_code <= 599:
        return status_code
    return GENERIC_STATUS


def _reason(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return GENERIC_MESSAGE
