"""Document Store Provider: lazily-connected MongoDB client shared by all requests.

Invariants:
    - The AsyncMongoClient is created on first use, never at import or construction
    - preload() issues a ping; failures surface as ProviderUnavailableError
    - close() is safe to call when no client was ever created
"""

import logging

from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from billing.core.errors import ProviderUnavailableError

logger = logging.getLogger(__name__)


class DocumentStoreProvider:
    """Process-wide MongoDB handle."""

    name = "document_store"

    def __init__(
        self, url: str, database_name: str, server_selection_timeout_ms: int = 5_000,
    ):
        self._url = url
        self._database_name = database_name
        self._server_selection_timeout_ms = server_selection_timeout_ms
        self._client: AsyncMongoClient | None = None

    @property
    def client(self) -> AsyncMongoClient:
        if self._client is None:
            self._client = AsyncMongoClient(
                self._url,
                serverSelectionTimeoutMS=self._server_selection_timeout_ms,
                tz_aware=True,
            )
        return self._client

    @property
    def database(self):
        return self.client[self._database_name]

    async def preload(self) -> None:
        try:
            await self.client.admin.command("ping")
        except PyMongoError as e:
            raise ProviderUnavailableError(self.name, f"preload failed: {e}") from e
        logger.info("Document store preloaded", extra={"provider": self.name})

    async def health_check(self) -> bool:
        try:
            await self.client.admin.command("ping")
            return True
        except PyMongoError as e:
            logger.error(f"Document store health check failed: {e}")
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
