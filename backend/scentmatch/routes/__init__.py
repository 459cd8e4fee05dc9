"""
ScentMatch Backend — API Routes Package
=========================================

Route Inventory:
    - auth.py:     POST /auth/signup, /auth/login, /auth/verify, /auth/logout
                   GET  /auth/me
    - catalog.py:  /notes and /perfumes (reads public, writes admin-only)
    - health.py:   GET  /health

Routes stay thin: extract input, call a service, pick the status code.
"""
