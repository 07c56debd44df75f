"""API Layer: mount orchestrator, middleware, routes and error handlers.

Invariants:
    - Routes and middleware are installed only by api/mount.py
"""
