# Services package init
"""
ScentMatch Backend — Services Layer
=====================================

What:  Business logic between routes (HTTP) and storage (SQLAlchemy).
How:   Routes build services per request through FastAPI dependencies;
       storage and delivery are injected so tests can substitute them.

Service Inventory:
    - identifiers:      email/phone normalization and SHA-256 hashing
    - otp:              6-digit code generation and expiry checks
    - notifier:         Notifier interface + LoggingNotifier (development)
    - credential_store: users, login codes, sessions, usage events
    - auth_service:     signup → login → verify → session flow
    - catalog_service:  perfumes, notes and the note pyramid
"""
