"""Core: framework-light building blocks of the dispatch layer.

Invariants:
    - Core never imports from api/ or infrastructure/
    - Persistence is only reached through provider_protocols
"""
