"""Request Context: per-request carrier of request data, persistence handles and route policy.

Invariants:
    - A fresh RequestContext is built for every non-monitor request
    - Provider handles are shared, never owned: the context does not close them
    - routes is the read-only RouteTable built at mount time
    - route_policy is derived from exact path membership in the RouteTable
    - Faults raised by the principal resolver propagate unchanged; only a
      timeout is converted (ContextTimeoutError)
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from starlette.requests import Request

from billing.core.errors import ContextTimeoutError, ErrorContext
from billing.core.provider_protocols import PreloadableProvider
from billing.core.route_classifier import RoutePolicy, RouteTable

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"
DEFAULT_TENANT_HEADER = "x-tenant-id"

# Authorization collaborator: resolves who is calling, or None.
PrincipalResolver = Callable[[Request, RoutePolicy], Awaitable[Any]]


async def resolve_no_principal(request: Request, policy: RoutePolicy) -> None:
    return None


@dataclass
class RequestContext:
    """Everything downstream handlers need to authorize and persist."""
    request: Request
    request_id: str
    tenant_id: str | None
    bearer_token: str | None
    document_store: PreloadableProvider
    relational_store: PreloadableProvider
    routes: RouteTable
    principal: Any = None

    @property
    def path(self) -> str:
        return self.request.url.path

    @property
    def public_routes(self) -> tuple[str, ...]:
        return self.routes.public_routes

    @property
    def admin_routes(self) -> tuple[str, ...]:
        return self.routes.admin_routes

    @property
    def route_policy(self) -> RoutePolicy:
        return self.routes.policy_for(self.path)

    @property
    def requires_authorization(self) -> bool:
        return self.route_policy is not RoutePolicy.PUBLIC

    @property
    def requires_admin(self) -> bool:
        return self.route_policy is RoutePolicy.ADMIN

    def log_extra(self) -> dict:
        return {
            "request_id": self.request_id,
            "tenant_id": self.tenant_id,
            "path": self.path,
            "method": self.request.method,
        }


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the raw bearer token, or None when the header is absent or not Bearer.

    The token is not verified here.
    """
    raw = (authorization or "").strip()
    parts = raw.split(" ", 1)
    if len(parts) != 2:
        return None
    scheme, token = parts[0].strip().lower(), parts[1].strip()
    if scheme != "bearer" or not token:
        return None
    return token


async def build_context(
    request: Request,
    document_store: PreloadableProvider,
    relational_store: PreloadableProvider,
    routes: RouteTable,
    *,
    principal_resolver: PrincipalResolver = resolve_no_principal,
    tenant_header: str = DEFAULT_TENANT_HEADER,
    timeout_seconds: float | None = None,
) -> RequestContext:
    """Build the RequestContext for one request."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    tenant_id = (request.headers.get(tenant_header) or "").strip() or None
    path = request.url.path

    pending = principal_resolver(request, routes.policy_for(path))
    if timeout_seconds is None:
        principal = await pending
    else:
        try:
            principal = await asyncio.wait_for(pending, timeout_seconds)
        except asyncio.TimeoutError as e:
            raise ContextTimeoutError(
                timeout_seconds,
                ErrorContext(request_id=request_id, tenant_id=tenant_id, path=path),
            ) from e

    return RequestContext(
        request=request,
        request_id=request_id,
        tenant_id=tenant_id,
        bearer_token=extract_bearer_token(request.headers.get("authorization")),
        document_store=document_store,
        relational_store=relational_store,
        routes=routes,
        principal=principal,
    )


class ContextBuilder:
    """Binds the process-wide providers and route table to build_context()."""

    def __init__(
        self,
        document_store: PreloadableProvider,
        relational_store: PreloadableProvider,
        routes: RouteTable,
        *,
        principal_resolver: PrincipalResolver | None = None,
        tenant_header: str = DEFAULT_TENANT_HEADER,
        timeout_seconds: float | None = None,
    ):
        self.document_store = document_store
        self.relational_store = relational_store
        self.routes = routes
        self.principal_resolver = principal_resolver or resolve_no_principal
        self.tenant_header = tenant_header
        self.timeout_seconds = timeout_seconds

    async def build(self, request: Request) -> RequestContext:
        return await build_context(
            request,
            self.document_store,
            self.relational_store,
            self.routes,
            principal_resolver=self.principal_resolver,
            tenant_header=self.tenant_header,
            timeout_seconds=self.timeout_seconds,
        )
