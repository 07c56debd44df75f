"""Pure ASGI middleware installed by the mount orchestrator."""
