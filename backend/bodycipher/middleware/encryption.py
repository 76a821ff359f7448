"""
bodycipher: Transport Encryption Middleware
=============================================

What:  ASGI activation hook for the RequestInterceptor.
How:   For every HTTP request the registry marks as encrypted:
       1. hand the raw receive/send/query string to interceptor.intercept()
       2. the continuation rebuilds the scope with the decrypted query string,
          without the now-wrong Content-Length and without the pathsend /
          zerocopysend extensions (file responses must go through the
          encrypted body stream), and calls the app
       3. DecodingError / PaddingError that escape before any response bytes
          were sent become a plaintext JSON 400
       Unmarked endpoints, websockets and lifespan events pass straight
       through.
When:  Registered in create_app() inside RequestIDMiddleware, so error
       responses and log lines carry the request ID.

Error Response (400):
    {
        "error": "decoding_error" | "padding_error",
        "message": "...",
        "request_id": "a1b2c3d4"
    }
    Sent unencrypted: the request never reached a handler, and the body
    carries no application data.
"""

import logging

from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from bodycipher.activation import EncryptedEndpointRegistry
from bodycipher.exceptions import DecodingError, PaddingError
from bodycipher.interceptor import RequestInterceptor
from bodycipher.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

ERROR_CODES = {
    DecodingError: "decoding_error",
    PaddingError: "padding_error",
}

# Server extensions that let a response bypass `http.response.body`
BYPASS_EXTENSIONS = ("http.response.pathsend", "http.response.zerocopysend")


class TransportEncryptionMiddleware:
    """
    Pure ASGI middleware; BaseHTTPMiddleware would collect the whole body
    before the interceptor ever saw it.

    Args:
        app:          Downstream ASGI application
        interceptor:  Shared RequestInterceptor (holds the CipherContext)
        registry:     Endpoints that require interception
    """

    def __init__(
        self,
        app: ASGIApp,
        interceptor: RequestInterceptor,
        registry: EncryptedEndpointRegistry,
    ) -> None:
        self.app = app
        self.interceptor = interceptor
        self.registry = registry

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self.registry.requires_encryption(scope):
            await self.app(scope, receive, send)
            return

        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        async def call_next(wrapped_receive: Receive, wrapped_send: Send, query_string) -> None:
            child_scope = dict(scope)
            child_scope["query_string"] = query_string or b""
            child_scope["headers"] = [
                (name, value)
                for name, value in scope.get("headers", [])
                if name.lower() != b"content-length"
            ]
            if "extensions" in scope:
                child_scope["extensions"] = {
                    key: value
                    for key, value in (scope["extensions"] or {}).items()
                    if key not in BYPASS_EXTENSIONS
                }
            await self.app(child_scope, wrapped_receive, wrapped_send)

        try:
            await self.interceptor.intercept(
                receive,
                tracking_send,
                scope.get("query_string", b""),
                call_next,
                head_request=scope.get("method") == "HEAD",
            )
        except (DecodingError, PaddingError) as exc:
            if response_started:
                raise
            await self._reject(scope, receive, send, exc)

    async def _reject(self, scope: Scope, receive: Receive, send: Send, exc) -> None:
        rid = request_id_var.get("")
        error = ERROR_CODES[type(exc)]
        logger.warning(
            "[%s] Rejected encrypted request %s %s: %s | Context: %s",
            rid,
            scope.get("method"),
            scope.get("path"),
            exc.message,
            exc.context,
        )
        response = JSONResponse(
            status_code=400,
            content={
                "error": error,
                "message": exc.message,
                "request_id": rid,
            },
        )
        await response(scope, receive, send)
