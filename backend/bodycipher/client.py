"""
bodycipher: Encrypted HTTP Client
===================================

What:  httpx-based client for services protected by the transport-encryption
       middleware.
How:   Encrypts the request body and the whole query string with the shared
       CipherContext, sends them, and decrypts response bodies that carry
       `X-Encrypted: true`. Plaintext responses (e.g. the 400 sent when the
       server rejects a payload) are returned unchanged.
Who:   Integration tests, scripts, and other services calling encrypted APIs.

Usage:
    context = CipherContext.derive(secret)
    async with EncryptedClient(context, base_url="http://localhost:8000") as client:
        response = await client.post("/api/messages", json={"sender": "a", "text": "hi"})
        response.json()   # already decrypted
"""

import json as jsonlib
import logging
from typing import Any, Mapping, Optional, Union

import httpx

from bodycipher.crypto.cipher_context import CipherContext
from bodycipher.crypto.streams import (
    ENCRYPTED_HEADER,
    decrypt_buffer,
    encrypt_buffer,
    encrypt_query_string,
)

logger = logging.getLogger(__name__)

QueryParams = Union[str, Mapping[str, Any]]


class EncryptedClient:
    """
    Thin wrapper around httpx.AsyncClient.

    Args:
        context:     Shared CipherContext (same secret as the server)
        http_client: Existing AsyncClient to use; otherwise one is created
                     from **client_kwargs and closed with this object
    """

    def __init__(
        self,
        context: CipherContext,
        http_client: Optional[httpx.AsyncClient] = None,
        **client_kwargs: Any,
    ) -> None:
        self.context = context
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(**client_kwargs)

    async def __aenter__(self) -> "EncryptedClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def request(
        self,
        method: str,
        url: str,
        *,
        content: Optional[bytes] = None,
        json: Any = None,
        params: Optional[QueryParams] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> httpx.Response:
        request_headers = dict(headers or {})
        if json is not None:
            content = jsonlib.dumps(json).encode("utf-8")
            request_headers.setdefault("Content-Type", "application/json")

        body = encrypt_buffer(self.context, content) if content is not None else None

        if params:
            plain_query = params if isinstance(params, str) else str(httpx.QueryParams(params))
            url = f"{url}?{encrypt_query_string(self.context, plain_query)}"

        response = await self._client.request(
            method, url, content=body, headers=request_headers
        )
        return self._decrypt_response(response)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    def _decrypt_response(self, response: httpx.Response) -> httpx.Response:
        if response.headers.get(ENCRYPTED_HEADER, "").lower() != "true":
            return response

        plaintext = decrypt_buffer(self.context, response.content)
        headers = [
            (name, value)
            for name, value in response.headers.multi_items()
            if name.lower() not in ("content-length", "content-encoding", "transfer-encoding")
        ]
        logger.debug(
            "Decrypted %d response bytes into %d plaintext bytes",
            len(response.content),
            len(plaintext),
        )
        return httpx.Response(
            status_code=response.status_code,
            headers=headers,
            content=plaintext,
            request=response.request,
        )
