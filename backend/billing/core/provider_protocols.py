"""Boundary Protocols: contracts between the dispatch core and persistence providers.

Invariants:
    - Core NEVER imports concrete providers; it only sees these protocols
    - Providers are process-wide singletons shared by every request
    - preload() may be slow and may fail; callers decide whether to await it
"""

from typing import Protocol


class PreloadableProvider(Protocol):
    """Persistence handle that warms up asynchronously after startup."""
    name: str

    async def preload(self) -> None: ...
    async def health_check(self) -> bool: ...
    async def close(self) -> None: ...
