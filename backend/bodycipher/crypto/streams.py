"""
bodycipher: Encrypted ASGI Streams
====================================

What:  Wraps the raw ASGI `receive` and `send` callables so the application
       reads plaintext request bodies and writes plaintext response bodies
       while the wire carries base64 AES-CBC ciphertext.
How:   DecryptingReader runs every `http.request` chunk through
       base64-decode → CBC-decrypt. EncryptingWriter runs every
       `http.response.body` chunk through CBC-encrypt → base64-encode.
       Nothing is buffered beyond what the filter stages need for block and
       quantum alignment.

Also provides one-shot buffer helpers built from the same chains, used for
the query string (which is decrypted as a single in-memory value) and by
the HTTP client.
"""

import logging
from typing import Any, Awaitable, Callable, MutableMapping, Optional, Union
from urllib.parse import quote, unquote

from starlette.datastructures import MutableHeaders

from bodycipher.crypto.cipher_context import CipherContext
from bodycipher.crypto.transforms import (
    Base64DecodeStage,
    Base64EncodeStage,
    FilterChain,
)
from bodycipher.exceptions import BodyCipherError, DecodingError

logger = logging.getLogger(__name__)

Message = MutableMapping[str, Any]
Receive = Callable[[], Awaitable[Message]]
Send = Callable[[Message], Awaitable[None]]

QUERY_DELIMITER = "?"
ENCRYPTED_HEADER = "X-Encrypted"

# Responses that must not carry a message body (RFC 9110 6.4.1)
BODYLESS_STATUS_CODES = frozenset({204, 304})


def decrypting_chain(context: CipherContext, source: str = "body") -> FilterChain:
    """wire → base64 decode → CBC decrypt → plaintext"""
    return FilterChain([Base64DecodeStage(source=source), context.new_decryptor()])


def encrypting_chain(context: CipherContext) -> FilterChain:
    """plaintext → CBC encrypt → base64 encode → wire"""
    return FilterChain([context.new_encryptor(), Base64EncodeStage()])


def encrypt_buffer(context: CipherContext, data: bytes) -> bytes:
    """Encrypt an in-memory value; returns base64 ASCII bytes."""
    chain = encrypting_chain(context)
    return chain.update(data) + chain.finalize()


def decrypt_buffer(
    context: CipherContext, data: Union[bytes, str], source: str = "body"
) -> bytes:
    """Decrypt an in-memory base64 ciphertext value."""
    if isinstance(data, str):
        try:
            data = data.encode("ascii")
        except UnicodeEncodeError as e:
            raise DecodingError(source=source) from e
    chain = decrypting_chain(context, source=source)
    return chain.update(data) + chain.finalize()


def decrypt_query_string(context: CipherContext, query: Union[bytes, str]) -> Union[bytes, str]:
    """
    Decrypt a whole query string as a single unit.

    Accepts either the browser form ("?<payload>") or the raw ASGI form
    (b"<payload>", no delimiter). The payload may be percent-encoded. The
    result keeps the form of the input: a leading '?' is re-attached, bytes
    in give bytes out.

    Example:
        "?" + base64(encrypt("a=1&b=2"))  →  "?a=1&b=2"
    """
    as_bytes = isinstance(query, bytes)
    text = query.decode("latin-1") if as_bytes else query

    prefix = ""
    if text.startswith(QUERY_DELIMITER):
        prefix, text = QUERY_DELIMITER, text[len(QUERY_DELIMITER):]

    plaintext = decrypt_buffer(context, unquote(text), source="query")

    if as_bytes:
        return prefix.encode("ascii") + plaintext
    try:
        return prefix + plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodingError("Decrypted query string is not valid UTF-8", source="query") from e


def encrypt_query_string(context: CipherContext, plaintext: str) -> str:
    """Client-side inverse of decrypt_query_string, without the delimiter."""
    payload = encrypt_buffer(context, plaintext.encode("utf-8")).decode("ascii")
    return quote(payload, safe="")


class DecryptingReader:
    """
    Read side of a request encryption session.

    Lifecycle:
        1. receive() transforms each `http.request` message
        2. the message with more_body=False carries the flushed tail
        3. after that, receive() passes through (e.g. `http.disconnect`)
        4. close() is called by the session; later reads raise RuntimeError

    A DecodingError or PaddingError raised by receive() is also kept in
    `error`, because frameworks may catch it while parsing the body and
    answer with a response of their own.
    """

    def __init__(self, receive: Receive, context: CipherContext) -> None:
        self._receive = receive
        self._chain = decrypting_chain(context)
        self._exhausted = False
        self._closed = False
        self.error: Optional[BodyCipherError] = None
        self.bytes_in = 0
        self.bytes_out = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def receive(self) -> Message:
        if self._closed:
            raise RuntimeError("Decrypting request stream is closed")

        message = await self._receive()
        if message["type"] != "http.request" or self._exhausted:
            return message

        raw = message.get("body", b"")
        more_body = message.get("more_body", False)
        self.bytes_in += len(raw)

        try:
            body = self._chain.update(raw)
            if not more_body:
                body += self._chain.finalize()
                self._exhausted = True
        except BodyCipherError as e:
            self.error = e
            raise
        self.bytes_out += len(body)

        return {"type": "http.request", "body": body, "more_body": more_body}

    def raise_for_error(self) -> None:
        """Re-raise the decryption failure seen by receive(), if any."""
        if self.error is not None:
            raise self.error

    async def close(self) -> None:
        self._closed = True


class EncryptingWriter:
    """
    Write side of a request encryption session.

    On `http.response.start` the Content-Length header is dropped (the
    encrypted body has a different length) and X-Encrypted is set. Each
    `http.response.body` chunk is encrypted as it arrives; the final chunk
    flushes the padding block. close() flushes a response that was started
    but never completed, so the sink always sees its last ciphertext block
    exactly once.

    Responses that carry no body (204, 304, 1xx, or any answer to a HEAD
    request) are forwarded without encryption and with an empty body.

    Args:
        send:          Raw ASGI send callable
        context:       Cipher context for this process
        head_request:  The request method was HEAD
        before_start:  Called before the response starts; may raise to stop
                       the response from being sent at all
    """

    def __init__(
        self,
        send: Send,
        context: CipherContext,
        head_request: bool = False,
        before_start: Optional[Callable[[], None]] = None,
    ) -> None:
        self._send = send
        self._chain = encrypting_chain(context)
        self._head_request = head_request
        self._before_start = before_start
        self._started = False
        self._completed = False
        self._closed = False
        self._bodyless = False
        self.bytes_in = 0
        self.bytes_out = 0

    @property
    def started(self) -> bool:
        return self._started

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def bodyless(self) -> bool:
        return self._bodyless

    async def send(self, message: Message) -> None:
        if self._closed:
            raise RuntimeError("Encrypting response stream is closed")

        message_type = message["type"]
        if message_type == "http.response.start":
            await self._start(message)
        elif message_type == "http.response.body":
            await self._write(message.get("body", b""), message.get("more_body", False))
        elif message_type.startswith("http.response."):
            # pathsend, zerocopysend, trailers... would leave the body unencrypted
            raise RuntimeError(f"Cannot encrypt ASGI message type {message_type!r}")
        else:
            await self._send(message)

    async def close(self) -> None:
        if self._closed:
            return
        try:
            if self._started and not self._completed:
                logger.debug("Flushing unfinished encrypted response on release")
                await self._write(b"", more_body=False)
        finally:
            self._closed = True

    async def _start(self, message: Message) -> None:
        if self._before_start is not None:
            self._before_start()

        status = message["status"]
        self._bodyless = status < 200 or status in BODYLESS_STATUS_CODES or self._head_request
        self._started = True

        if status < 200 or status in BODYLESS_STATUS_CODES:
            await self._send(message)
            return

        headers = MutableHeaders(raw=list(message.get("headers", [])))
        if "content-length" in headers:
            del headers["content-length"]
        headers[ENCRYPTED_HEADER] = "true"
        await self._send({**message, "headers": headers.raw})

    async def _write(self, body: bytes, more_body: bool) -> None:
        if self._completed:
            raise RuntimeError("Encrypted response body has already been completed")
        self.bytes_in += len(body)

        if self._bodyless:
            if not more_body:
                self._completed = True
                await self._send({"type": "http.response.body", "body": b"", "more_body": False})
            return

        chunk = self._chain.update(body)
        if not more_body:
            chunk += self._chain.finalize()
            self._completed = True
        self.bytes_out += len(chunk)

        if chunk or not more_body:
            await self._send({"type": "http.response.body", "body": chunk, "more_body": more_body})
