"""
FastAPI REST Endpoints
======================

HTTP access to the DSL playground core.

Endpoints:
- POST /api/v1/completions: Completion candidates at a cursor
- POST /api/v1/signatures: Signature help at a cursor
- POST /api/v1/run: Sandboxed evaluation and rendering
- POST /api/v1/playground: Dispatch by editor trigger
- GET /api/v1/elements: Element catalog
- GET /api/v1/health: Health check endpoint
"""
