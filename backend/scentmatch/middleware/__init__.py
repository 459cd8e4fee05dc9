"""
ScentMatch Backend — Middleware Package
========================================

Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [Rate Limit] → [Request ID] → [Logging] → [CORS] → Route Handler

    Rate limiting runs first so rejected requests cost nothing else, but it
    runs before the request ID is assigned; its 429 body therefore carries an
    empty requestId.
"""
