"""Billing API: FastAPI application entry point.

Invariants:
    - All routers, middleware and error handlers are installed by Gateway.mount()
    - Database preload is started on startup and never awaited
    - CORS configured from settings (not hardcoded), outside the encryption interceptor
    - Providers are closed on shutdown via the lifespan context manager
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from billing.api.mount import Gateway, MountPlan
from billing.config import Settings, get_settings
from billing.core.encryption import ResponseEncryptor
from billing.core.provider_protocols import PreloadableProvider
from billing.core.request_context import PrincipalResolver
from billing.infrastructure.database import RelationalStoreProvider
from billing.infrastructure.document_store import DocumentStoreProvider
from billing.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    document_store: PreloadableProvider | None = None,
    relational_store: PreloadableProvider | None = None,
    principal_resolver: PrincipalResolver | None = None,
    encryptor: ResponseEncryptor | None = None,
    plan: MountPlan | None = None,
) -> FastAPI:
    """Build the app with its providers and the mounted dispatch pipeline."""
    settings = settings or get_settings()

    if document_store is None:
        document_store = DocumentStoreProvider(
            settings.mongo_url,
            settings.mongo_database,
            server_selection_timeout_ms=settings.mongo_server_selection_timeout_ms,
        )
    if relational_store is None:
        relational_store = RelationalStoreProvider(
            settings.database_url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
        )
    if plan is None:
        plan = MountPlan(
            encryptor=encryptor or ResponseEncryptor.from_b64(settings.response_encryption_key),
            principal_resolver=principal_resolver,
            tenant_header=settings.tenant_header,
            context_timeout_seconds=settings.context_build_timeout_seconds,
        )
    gateway = Gateway(document_store, relational_store, plan)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup/shutdown lifecycle."""
        setup_logging(settings.log_level, settings.log_format)
        gateway.start()
        logger.info("Billing API started")
        yield
        logger.info("Billing API shutting down")
        await gateway.close()

    app = FastAPI(title="Billing API", version="1.0.0", lifespan=lifespan)
    gateway.mount(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


app = create_app()
