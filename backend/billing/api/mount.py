"""Router Mount Orchestrator: assembles the dispatch pipeline in a fixed stage order.

Invariants:
    - mount() evaluates the stages strictly in this order:
        1. startup       providers are handed in; start() fires their preload
        2. classify      RouteTable built from monitor + business routers
        3. interceptor   ResponseEncryptionMiddleware, outermost
        4. monitor       mounted under its prefix, exempt from context construction
        5. context       RequestContextMiddleware for every other path
        6. business      routers mounted in plan order under their prefixes
        7. faults        FaultBoundaryMiddleware + exception handlers, translator-backed
    - The RouteTable is computed once and never mutated afterwards; its lists
      follow CLASSIFICATION_ORDER, independent of the mount order
    - Prefixes never collide; the monitor prefix is never the root
    - mount() on an already-mounted app raises MountError
    - Preload is never awaited by startup or by any request

Design Decisions:
    - Starlette wraps the last added middleware outermost, so the middleware
      stages are declared outermost-first and installed in reverse
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import ModuleType
from typing import Any, Sequence

from fastapi import APIRouter, FastAPI

from billing.api.error_handlers import register_error_handlers
from billing.api.middleware.context import RequestContextMiddleware
from billing.api.middleware.encryption import ResponseEncryptionMiddleware
from billing.api.middleware.faults import FaultBoundaryMiddleware
from billing.api.routes import monitor, payment, product, receipt, subscription, webhook
from billing.core.encryption import ResponseEncryptor
from billing.core.errors import MountError
from billing.core.fault_translator import FaultTranslator
from billing.core.provider_protocols import PreloadableProvider
from billing.core.request_context import (
    DEFAULT_TENANT_HEADER, ContextBuilder, PrincipalResolver,
)
from billing.core.route_classifier import RoutePrefix, RouteTable, classify
from billing.infrastructure.preload import PreloadUtil

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BusinessRouter:
    """A router plus the sub-paths it declares public or admin."""
    prefix: str
    router: APIRouter
    public_routes: tuple[str, ...] = ()
    admin_routes: tuple[str, ...] = ()

    def __post_init__(self):
        if isinstance(self.prefix, Enum):
            object.__setattr__(self, "prefix", self.prefix.value)
        object.__setattr__(self, "public_routes", tuple(self.public_routes))
        object.__setattr__(self, "admin_routes", tuple(self.admin_routes))

    @classmethod
    def from_module(cls, prefix: str, module: ModuleType) -> "BusinessRouter":
        return cls(
            prefix=prefix,
            router=module.router,
            public_routes=tuple(getattr(module, "public_routes", ())),
            admin_routes=tuple(getattr(module, "admin_routes", ())),
        )


def monitor_router() -> BusinessRouter:
    return BusinessRouter.from_module(RoutePrefix.MONITOR, monitor)


def default_business_routers() -> tuple[BusinessRouter, ...]:
    return (
        BusinessRouter.from_module(RoutePrefix.PAYMENT, payment),
        BusinessRouter.from_module(RoutePrefix.PRODUCT, product),
        BusinessRouter.from_module(RoutePrefix.WEBHOOK, webhook),
        BusinessRouter.from_module(RoutePrefix.RECEIPT, receipt),
        BusinessRouter.from_module(RoutePrefix.SUBSCRIPTION, subscription),
    )


CLASSIFICATION_ORDER: tuple[str, ...] = (
    RoutePrefix.MONITOR.value,
    RoutePrefix.PRODUCT.value,
    RoutePrefix.WEBHOOK.value,
    RoutePrefix.PAYMENT.value,
    RoutePrefix.RECEIPT.value,
    RoutePrefix.SUBSCRIPTION.value,
)


def classification_routers(plan: "MountPlan") -> list[BusinessRouter]:
    """Monitor and business routers in the order their routes are listed.

    Known prefixes follow CLASSIFICATION_ORDER; any other router keeps its
    plan position after them.
    """
    routers = [plan.monitor, *plan.business_routers]
    rank = {prefix: i for i, prefix in enumerate(CLASSIFICATION_ORDER)}
    return sorted(routers, key=lambda r: rank.get(r.prefix, len(rank)))


@dataclass(frozen=True)
class MountPlan:
    """Everything mount() needs, listed in stage order."""
    encryptor: ResponseEncryptor
    monitor: BusinessRouter = field(default_factory=monitor_router)
    business_routers: tuple[BusinessRouter, ...] = field(default_factory=default_business_routers)
    principal_resolver: PrincipalResolver | None = None
    tenant_header: str = DEFAULT_TENANT_HEADER
    context_timeout_seconds: float | None = None
    translator: FaultTranslator = field(default_factory=FaultTranslator)


def check_prefixes(plan: MountPlan) -> None:
    """Reject malformed or colliding mount prefixes."""
    prefixes = [plan.monitor.prefix, *(r.prefix for r in plan.business_routers)]
    for prefix in prefixes:
        if not prefix.startswith("/"):
            raise MountError(f"Mount prefix '{prefix}' must start with '/'")
    if plan.monitor.prefix == RoutePrefix.ROOT.value:
        raise MountError("The monitor router cannot be mounted at the root")
    duplicates = sorted({p for p in prefixes if prefixes.count(p) > 1})
    if duplicates:
        raise MountError(f"Mount prefixes collide: {', '.join(duplicates)}")


class Gateway:
    """Owns the providers, the RouteTable and the assembled pipeline."""

    def __init__(
        self,
        document_store: PreloadableProvider,
        relational_store: PreloadableProvider,
        plan: MountPlan,
    ):
        self.document_store = document_store
        self.relational_store = relational_store
        self.plan = plan
        self.routes: RouteTable | None = None
        self._preload = PreloadUtil()

    @property
    def providers(self) -> tuple[PreloadableProvider, ...]:
        return (self.document_store, self.relational_store)

    @property
    def preload_task(self):
        return self._preload.task

    def mount(self, app: FastAPI) -> RouteTable:
        if getattr(app.state, "gateway", None) is not None:
            raise MountError("Gateway is already mounted on this app")
        plan = self.plan
        check_prefixes(plan)

        # Stage 2: classify
        routes = classify(classification_routers(plan))
        logger.info(
            f"Public routes: {list(routes.public_routes)}",
            extra={"routes": list(routes.public_routes)},
        )
        logger.info(
            f"Admin routes: {list(routes.admin_routes)}",
            extra={"routes": list(routes.admin_routes)},
        )
        builder = ContextBuilder(
            self.document_store,
            self.relational_store,
            routes,
            principal_resolver=plan.principal_resolver,
            tenant_header=plan.tenant_header,
            timeout_seconds=plan.context_timeout_seconds,
        )

        # Stages 3, 7 and 5 as seen by a request, outermost first
        _install_middleware(app, [
            (ResponseEncryptionMiddleware, {"encryptor": plan.encryptor}),
            (FaultBoundaryMiddleware, {"translator": plan.translator}),
            (RequestContextMiddleware, {
                "builder": builder,
                "translator": plan.translator,
                "exempt_prefixes": (plan.monitor.prefix,),
            }),
        ])

        # Stage 4: monitor
        app.include_router(plan.monitor.router, prefix=plan.monitor.prefix)

        # Stage 6: business routers
        for business in plan.business_routers:
            app.include_router(business.router, prefix=business.prefix)

        # Stage 7: exception handlers behind the fault boundary
        register_error_handlers(app, plan.translator)

        app.state.gateway = self
        self.routes = routes
        return routes

    def start(self):
        """Fire-and-forget provider preload. Call from the app lifespan."""
        return self._preload.start(*self.providers)

    async def close(self) -> None:
        await self._preload.cancel()
        for provider in self.providers:
            try:
                await provider.close()
            except Exception as e:
                logger.error(
                    f"Closing {provider.name} failed: {e}",
                    extra={"provider": provider.name},
                )


def _install_middleware(app: FastAPI, stages: Sequence[tuple[type, dict[str, Any]]]) -> None:
    for middleware_class, options in reversed(stages):
        app.add_middleware(middleware_class, **options)
