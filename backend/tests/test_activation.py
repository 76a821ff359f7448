"""
bodycipher: Endpoint Activation Tests
=======================================

What:  Tests for the @encrypted decorator and EncryptedEndpointRegistry.
How:   Registries are resolved from APIRouter instances, exactly as
       create_app() does; included apps are exercised over ASGI.
"""

import logging

import pytest
from fastapi import APIRouter, FastAPI, WebSocket
from httpx import ASGITransport, AsyncClient
from starlette.responses import PlainTextResponse
from starlette.routing import Mount

from bodycipher.activation import EncryptedEndpointRegistry, encrypted, is_encrypted
from bodycipher.client import EncryptedClient
from bodycipher.exceptions import ConfigurationError
from bodycipher.interceptor import RequestInterceptor
from bodycipher.middleware.encryption import TransportEncryptionMiddleware


def _http_scope(path: str, method: str = "GET") -> dict:
    return {
        "type": "http",
        "method": method,
        "path": path,
        "root_path": "",
        "query_string": b"",
        "headers": [],
    }


def _router() -> APIRouter:
    router = APIRouter(prefix="/api")

    @router.get("/secret/{item_id}")
    @encrypted
    async def secret_item(item_id: int):
        return {"id": item_id}

    @router.get("/public")
    async def public():
        return {}

    @router.post("/listed")
    async def listed():
        return {}

    return router


class TestDecorator:
    def test_marks_function(self):
        @encrypted
        async def handler():
            return None

        assert is_encrypted(handler)

    def test_unmarked_function(self):
        async def handler():
            return None

        assert not is_encrypted(handler)
        assert not is_encrypted(None)


class TestRegistry:
    def test_decorated_route_is_selected(self):
        registry = EncryptedEndpointRegistry.from_routers([_router()])
        assert len(registry) == 1
        assert registry.requires_encryption(_http_scope("/api/secret/42"))

    def test_unmarked_route_is_not_selected(self):
        registry = EncryptedEndpointRegistry.from_routers([_router()])
        assert not registry.requires_encryption(_http_scope("/api/public"))
        assert not registry.requires_encryption(_http_scope("/docs"))

    def test_path_policy_list(self):
        registry = EncryptedEndpointRegistry.from_routers([_router()], ["/api/listed"])
        assert len(registry) == 2
        assert registry.requires_encryption(_http_scope("/api/listed", "POST"))

    def test_method_must_match(self):
        registry = EncryptedEndpointRegistry.from_routers([_router()], ["/api/listed"])
        assert not registry.requires_encryption(_http_scope("/api/listed", "GET"))

    def test_path_parameters_match_like_the_router(self):
        registry = EncryptedEndpointRegistry.from_routers([_router()])
        assert registry.requires_encryption(_http_scope("/api/secret/7"))
        assert not registry.requires_encryption(_http_scope("/api/secret"))
        assert not registry.requires_encryption(_http_scope("/api/secret/7/extra"))

    def test_non_http_scopes_are_ignored(self):
        registry = EncryptedEndpointRegistry.from_routers([_router()])
        assert not registry.requires_encryption({"type": "lifespan"})
        assert not registry.requires_encryption({**_http_scope("/api/secret/1"), "type": "websocket"})

    def test_selection_is_logged(self, caplog):
        with caplog.at_level(logging.INFO, logger="bodycipher.activation"):
            EncryptedEndpointRegistry.from_routers([_router()])
        assert "/api/secret/{item_id}" in caplog.text


class TestFailClosed:
    """Anything the registry cannot resolve stops startup."""

    def test_unknown_policy_path_raises(self):
        with pytest.raises(ConfigurationError, match="/api/missing") as exc_info:
            EncryptedEndpointRegistry.from_routers([_router()], ["/api/missing"])
        assert exc_info.value.setting == "encrypted_paths"

    def test_opaque_route_raises(self):
        routes = list(_router().routes) + [Mount("/static", app=PlainTextResponse("x"))]
        with pytest.raises(ConfigurationError, match="Mount"):
            EncryptedEndpointRegistry.from_routes(routes)

    def test_marked_websocket_raises(self):
        router = APIRouter()

        @router.websocket("/ws")
        @encrypted
        async def stream(websocket: WebSocket):
            await websocket.close()

        with pytest.raises(ConfigurationError, match="/ws"):
            EncryptedEndpointRegistry.from_routers([router])

    def test_unmarked_websocket_is_ignored(self):
        router = _router()

        @router.websocket("/ws")
        async def stream(websocket: WebSocket):
            await websocket.close()

        assert len(EncryptedEndpointRegistry.from_routers([router])) == 1


class TestIncludedRouter:
    """A router mounted with include_router is still encrypted on the wire."""

    @pytest.mark.asyncio
    async def test_included_route_is_encrypted(self, cipher_context):
        router = APIRouter(prefix="/api")

        @router.post("/echo")
        @encrypted
        async def echo():
            return PlainTextResponse("included")

        app = FastAPI()
        app.include_router(router)
        app.add_middleware(
            TransportEncryptionMiddleware,
            interceptor=RequestInterceptor(cipher_context),
            registry=EncryptedEndpointRegistry.from_routers([router]),
        )

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as raw:
            wire = await raw.post("/api/echo", content=b"")
            decrypted = await EncryptedClient(cipher_context, http_client=raw).post("/api/echo")

        assert wire.headers["x-encrypted"] == "true"
        assert wire.content != b"included"
        assert decrypted.text == "included"
