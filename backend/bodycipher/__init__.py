"""
bodycipher: Application Package Initializer
=============================================

What: Transport-encryption interceptor for ASGI (FastAPI / Starlette) services.
How:  Request bodies and query strings arrive as base64 AES-CBC ciphertext and
      are decrypted on the way in; response bodies are encrypted on the way out.
      Route handlers only ever see plaintext.

Architecture Note:

    ┌─────────────────────────────────────┐
    │   Middleware (ASGI activation)      │  ← which endpoints are intercepted
    ├─────────────────────────────────────┤
    │   Interceptor (per-request session) │  ← wrap, invoke, release
    ├─────────────────────────────────────┤
    │   Streams & filter stages           │  ← base64 + CBC transforms
    ├─────────────────────────────────────┤
    │   Cipher Context                    │  ← key / IV derivation
    └─────────────────────────────────────┘

    Each layer only depends on the layers below it.
"""

__version__ = "1.0.0"
