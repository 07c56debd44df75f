"""Fault Translator: total mapping of faults to (status, message).

Tests cover:
    - GatewayError subclasses keep their status and message
    - HTTPException / validation / timeout mapping
    - Unknown shapes (including non-exceptions) fall back to 500
    - Translation never raises
"""

import asyncio

import pytest
from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError

from billing.core.errors import (
    ContextConstructionError, ContextTimeoutError, EncryptionError,
    ProviderUnavailableError,
)
from billing.core.fault_translator import (
    GENERIC_MESSAGE, FaultTranslator, TranslatedFault,
)


@pytest.fixture
def translator():
    return FaultTranslator()


def test_gateway_error_keeps_status_and_message(translator):
    fault = translator.handle(ProviderUnavailableError("relational_store", "down"))
    assert fault == TranslatedFault(503, "relational_store unavailable: down")


def test_context_timeout_maps_to_504(translator):
    fault = translator.handle(ContextTimeoutError(1.5))
    assert fault.code == 504
    assert "1.5s" in fault.message


def test_encryption_error_maps_to_500(translator):
    fault = translator.handle(EncryptionError("boom"))
    assert fault == TranslatedFault(500, "boom")


def test_http_exception_uses_detail(translator):
    fault = translator.handle(HTTPException(status_code=404, detail="Receipt not found"))
    assert fault == TranslatedFault(404, "Receipt not found")


def test_http_exception_with_structured_detail_uses_reason_phrase(translator):
    fault = translator.handle(HTTPException(status_code=409, detail={"k": "v"}))
    assert fault == TranslatedFault(409, "Conflict")


def test_validation_error_maps_to_400(translator):
    fault = translator.handle(RequestValidationError([]))
    assert fault == TranslatedFault(400, "Invalid request data")


def test_timeout_maps_to_504(translator):
    assert translator.handle(asyncio.TimeoutError()).code == 504
    assert translator.handle(TimeoutError()).code == 504


def test_unknown_exception_does_not_leak_details(translator):
    fault = translator.handle(RuntimeError("password=hunter2"))
    assert fault == TranslatedFault(500, GENERIC_MESSAGE)


@pytest.mark.parametrize("fault", [None, 42, "boom", {"code": 418}, object()])
def test_non_exception_inputs_fall_back_to_500(translator, fault):
    assert translator.handle(fault) == TranslatedFault(500, GENERIC_MESSAGE)


def test_out_of_range_status_is_bounded(translator):
    err = ContextConstructionError("odd", http_status=200)
    assert translator.handle(err).code == 500


def test_translation_failure_falls_back(translator, monkeypatch):
    def explode(fault):
        raise ValueError("translator bug")

    monkeypatch.setattr(translator, "_translate", explode)
    assert translator.handle(RuntimeError()) == TranslatedFault(500, GENERIC_MESSAGE)


def test_to_response_shape():
    assert TranslatedFault(503, "down").to_response() == {"message": "down"}
