"""
bodycipher: Request Interceptor
=================================

What:  Binds one decrypting read-stream and one encrypting write-stream to a
       single request/response cycle and guarantees both are released.
How:   intercept() walks a fixed sequence of states:

       START → STREAMS_WRAPPED → QUERY_DECRYPTED (only if a query is present)
             → HANDLER_INVOKED → STREAMS_RELEASED

       Release happens in a `finally` block, so it runs when the downstream
       handler returns, raises, or is cancelled.
Who:   Called by TransportEncryptionMiddleware for every intercepted request.

Concurrency:
    RequestInterceptor holds nothing but a shared, immutable CipherContext.
    All per-request state lives in a RequestEncryptionSession, so one
    interceptor instance serves any number of concurrent requests.
"""

import enum
import logging
from typing import Awaitable, Callable, Optional, Union

from bodycipher.crypto.cipher_context import CipherContext
from bodycipher.crypto.streams import (
    DecryptingReader,
    EncryptingWriter,
    Message,
    Receive,
    Send,
    decrypt_query_string,
)

logger = logging.getLogger(__name__)

QueryString = Union[bytes, str]
Continuation = Callable[[Receive, Send, QueryString], Awaitable[None]]


class SessionState(str, enum.Enum):
    START = "start"
    STREAMS_WRAPPED = "streams_wrapped"
    QUERY_DECRYPTED = "query_decrypted"
    HANDLER_INVOKED = "handler_invoked"
    STREAMS_RELEASED = "streams_released"


class RequestEncryptionSession:
    """
    Per-cycle owner of the wrapped streams.

    The raw `receive` / `send` are borrowed from the server and are only
    touched through the reader and writer once the session exists.
    """

    def __init__(
        self,
        context: CipherContext,
        receive: Receive,
        send: Send,
        head_request: bool = False,
    ) -> None:
        self.state = SessionState.START
        self.reader = DecryptingReader(receive, context)
        # A body that failed to decrypt must not be answered by the handler
        self.writer = EncryptingWriter(
            send,
            context,
            head_request=head_request,
            before_start=self.reader.raise_for_error,
        )
        self.query_string: Optional[QueryString] = None
        self._context = context
        self.state = SessionState.STREAMS_WRAPPED

    async def receive(self) -> Message:
        return await self.reader.receive()

    async def send(self, message: Message) -> None:
        await self.writer.send(message)

    def decrypt_query(self, query_string: QueryString) -> QueryString:
        """Decrypts the whole query string as one in-memory value."""
        self.query_string = decrypt_query_string(self._context, query_string)
        self.state = SessionState.QUERY_DECRYPTED
        return self.query_string

    @property
    def released(self) -> bool:
        return self.state is SessionState.STREAMS_RELEASED

    async def release(self) -> None:
        """Flush and close both streams. Safe to call more than once."""
        if self.released:
            return
        try:
            await self.writer.close()
        finally:
            await self.reader.close()
            self.state = SessionState.STREAMS_RELEASED


class RequestInterceptor:
    """
    Stateless, reentrant orchestrator for one request/response cycle.

    Usage:
        interceptor = RequestInterceptor(CipherContext.derive(secret))

        async def call_next(receive, send, query_string):
            await app(child_scope(query_string), receive, send)

        await interceptor.intercept(receive, send, scope["query_string"], call_next)
    """

    def __init__(self, context: CipherContext) -> None:
        self.context = context

    def open_session(
        self, receive: Receive, send: Send, head_request: bool = False
    ) -> RequestEncryptionSession:
        return RequestEncryptionSession(self.context, receive, send, head_request)

    async def intercept(
        self,
        receive: Receive,
        send: Send,
        query_string: QueryString,
        call_next: Continuation,
        head_request: bool = False,
    ) -> RequestEncryptionSession:
        """
        Run `call_next` with decrypting/encrypting streams and a decrypted query.

        Raises:
            DecodingError: the query string (or, once the handler reads it,
                the body) is not valid base64.
            PaddingError: ciphertext length or padding is invalid.
            Either of the two is raised in place of the response when the
                handler (or the framework) caught a body decryption error
                and tried to answer anyway.
            Anything `call_next` raises, after both streams are released.
        """
        session = self.open_session(receive, send, head_request)
        try:
            if query_string:
                query_string = session.decrypt_query(query_string)
            session.state = SessionState.HANDLER_INVOKED
            await call_next(session.receive, session.send, query_string)
        finally:
            await session.release()
            logger.debug(
                "Released encryption session: %d bytes decrypted, %d bytes encrypted",
                session.reader.bytes_out,
                session.writer.bytes_in,
            )
        return session
