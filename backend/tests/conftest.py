"""Root conftest: shared test configuration."""

import os

# Ensure the module-level app never points at a real database
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///:memory:",
)
os.environ.setdefault("MONGO_URL", "mongodb://localhost:27017")
