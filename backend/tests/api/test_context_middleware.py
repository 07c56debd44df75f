"""Context Middleware: ordering, monitor exemption, and local fault containment.

Invariants:
    - /monitor/* never has a RequestContext attached
    - Every other mounted path has one before its handler runs
    - A failing context build short-circuits with the translated {"message"}
      response; no business handler runs
"""

import pytest
from fastapi import APIRouter, Depends, Request
from httpx import ASGITransport, AsyncClient

from billing.api.dependencies import get_request_context
from billing.api.middleware.context import RequestContextMiddleware, path_has_prefix
from billing.api.mount import BusinessRouter, MountPlan
from billing.core.errors import MountError, ProviderUnavailableError
from billing.core.request_context import RequestContext

from tests.fakes import DbTimeoutFault, decrypt_json, failing_resolver, slow_resolver


class Recorder:
    """Routers that record what their handlers saw."""

    def __init__(self):
        self.calls: list[tuple[str, bool]] = []

    def router(self, name: str) -> APIRouter:
        router = APIRouter()

        @router.get("/seen")
        async def seen(request: Request):
            has_ctx = getattr(request.state, "ctx", None) is not None
            self.calls.append((name, has_ctx))
            return {"router": name, "has_context": has_ctx}

        @router.get("/needs-context")
        async def needs_context(ctx: RequestContext = Depends(get_request_context)):
            self.calls.append((name, True))
            return {"policy": ctx.route_policy.value}

        return router


def _plan(encryptor, recorder: Recorder, **kwargs) -> MountPlan:
    return MountPlan(
        encryptor=encryptor,
        monitor=BusinessRouter("/monitor", recorder.router("monitor"), public_routes=("/seen",)),
        business_routers=(
            BusinessRouter("/payment", recorder.router("payment"), admin_routes=("/seen",)),
            BusinessRouter("/receipt", recorder.router("receipt")),
        ),
        **kwargs,
    )


async def _get(app, path):
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        return await c.get(path)


async def test_monitor_requests_never_get_context(build_app, encryptor):
    recorder = Recorder()
    app = build_app(plan=_plan(encryptor, recorder))
    res = await _get(app, "/monitor/seen")

    assert decrypt_json(encryptor, res) == {"router": "monitor", "has_context": False}


async def test_business_requests_get_context_before_handler(build_app, encryptor):
    recorder = Recorder()
    app = build_app(plan=_plan(encryptor, recorder))

    for prefix in ("/payment", "/receipt"):
        res = await _get(app, f"{prefix}/seen")
        assert decrypt_json(encryptor, res)["has_context"] is True

    assert recorder.calls == [("payment", True), ("receipt", True)]


async def test_context_carries_classified_policy(build_app, encryptor):
    recorder = Recorder()
    app = build_app(plan=_plan(encryptor, recorder))

    res = await _get(app, "/receipt/needs-context")
    assert decrypt_json(encryptor, res) == {"policy": "default"}


async def test_monitor_bypasses_failing_context(build_app, encryptor):
    recorder = Recorder()
    app = build_app(plan=_plan(
        encryptor, recorder, principal_resolver=failing_resolver(DbTimeoutFault()),
    ))
    res = await _get(app, "/monitor/seen")

    assert res.status_code == 200
    assert recorder.calls == [("monitor", False)]


async def test_resolver_called_only_outside_monitor(build_app, encryptor):
    paths = []

    async def recording_resolver(request, policy):
        paths.append((request.url.path, policy.value))
        return None

    app = build_app(principal_resolver=recording_resolver)
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        await c.get("/monitor/health")
        await c.get("/product")
        await c.post("/product/create", json={"name": "Pro"})
        await c.post("/webhook", json={"type": "invoice.paid"})

    assert paths == [
        ("/product", "default"),
        ("/product/create", "admin"),
        ("/webhook", "public"),
    ]


async def test_context_fault_short_circuits_with_translated_response(build_app, encryptor):
    """DbTimeoutFault during context construction: translated 500, no handler runs."""
    recorder = Recorder()
    app = build_app(plan=_plan(
        encryptor, recorder, principal_resolver=failing_resolver(DbTimeoutFault("db timed out")),
    ))
    res = await _get(app, "/payment/seen")

    assert res.status_code == 500
    assert decrypt_json(encryptor, res) == {"message": "An unexpected error occurred"}
    assert recorder.calls == []


async def test_context_gateway_error_keeps_its_status(build_app, encryptor):
    recorder = Recorder()
    fault = ProviderUnavailableError("relational_store", "pool exhausted")
    app = build_app(plan=_plan(encryptor, recorder, principal_resolver=failing_resolver(fault)))
    res = await _get(app, "/receipt/seen")

    assert res.status_code == 503
    assert decrypt_json(encryptor, res) == {
        "message": "relational_store unavailable: pool exhausted",
    }
    assert recorder.calls == []


async def test_context_timeout_returns_504(build_app, encryptor):
    recorder = Recorder()
    app = build_app(plan=_plan(
        encryptor, recorder,
        principal_resolver=slow_resolver(1.0),
        context_timeout_seconds=0.01,
    ))
    res = await _get(app, "/payment/seen")

    assert res.status_code == 504
    assert "not ready" in decrypt_json(encryptor, res)["message"]
    assert recorder.calls == []


async def test_missing_context_is_a_translated_fault(build_app, encryptor):
    """A monitor handler asking for the context hits the terminal fault handler."""
    recorder = Recorder()
    app = build_app(plan=_plan(encryptor, recorder))
    res = await _get(app, "/monitor/needs-context")

    assert res.status_code == 500
    assert decrypt_json(encryptor, res) == {
        "message": "No request context attached for '/monitor/needs-context'",
    }


async def test_unmatched_paths_still_build_context(build_app, encryptor):
    paths = []

    async def recording_resolver(request, policy):
        paths.append(request.url.path)

    app = build_app(principal_resolver=recording_resolver)
    res = await _get(app, "/unknown")

    assert res.status_code == 404
    assert paths == ["/unknown"]


@pytest.mark.parametrize("path, expected", [
    ("/monitor", True),
    ("/monitor/health", True),
    ("/monitoring", False),
    ("/payment/monitor", False),
])
def test_path_has_prefix(path, expected):
    assert path_has_prefix(path, "/monitor") is expected


def test_root_cannot_be_exempt():
    with pytest.raises(MountError):
        RequestContextMiddleware(app=None, builder=None, translator=None, exempt_prefixes=("/",))
