"""
bodycipher: Request ID Middleware
===================================

What:  Assigns a correlation ID to each HTTP request and echoes it back in the
       X-Request-ID response header.
How:   Pure ASGI middleware. Reuses a client-provided X-Request-ID when
       present, otherwise generates a short UUID, stores it in a ContextVar
       for log lines and error bodies, and adds it to `http.response.start`.
When:  Outermost middleware, so even encryption failures carry the ID.

Written against raw ASGI instead of BaseHTTPMiddleware so streamed request
and response bodies pass through without being collected in memory.
"""

import uuid
from contextvars import ContextVar

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

REQUEST_ID_HEADER = "X-Request-ID"

# Coroutine-local storage for the current request ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        rid = Headers(scope=scope).get(REQUEST_ID_HEADER) or str(uuid.uuid4())[:8]
        token = request_id_var.set(rid)
        scope.setdefault("state", {})["request_id"] = rid

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                headers = MutableHeaders(scope=message)
                headers[REQUEST_ID_HEADER] = rid
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            request_id_var.reset(token)
