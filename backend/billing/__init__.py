"""Billing API: request-dispatch layer (route classification, request context, response encryption).

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
