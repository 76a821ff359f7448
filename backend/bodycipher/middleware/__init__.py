# Middleware package init
"""
bodycipher: Middleware Package
================================

Middleware Chain (outermost first):
    Request → [Request ID] → [Transport Encryption] → Router → Endpoint

    1. Request ID: correlation ID for log lines and error bodies
    2. Transport Encryption: decrypts body/query and encrypts the response
       for endpoints marked with @encrypted or listed in ENCRYPTED_PATHS

Both are pure ASGI middleware so bodies are streamed, never collected.
"""
