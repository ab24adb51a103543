"""
API Routes Package
==================
Shared helpers for the FastAPI app defined in api.py.

Modules:
  helpers  - pipeline construction, JSON coercion, payload builders
"""
