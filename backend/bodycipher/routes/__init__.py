# Routes package init
"""
bodycipher: API Routes Package
================================

Route Inventory:
    - echo.py:    POST /api/echo, POST /api/messages, GET /api/query  (encrypted)
    - health.py:  GET  /health                                         (plaintext)

Handlers never deal with ciphertext; they opt in with @encrypted and the
middleware does the rest.
"""
