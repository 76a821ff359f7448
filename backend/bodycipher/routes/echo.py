"""
bodycipher: Encrypted Demo Routes
===================================

What:  Endpoints that run behind the transport-encryption interceptor.
How:   Each handler is marked with @encrypted and written as if the API were
       plaintext. The middleware decrypts the body and query string before
       the handler sees them and encrypts whatever the handler returns.

Route Inventory:
    POST /api/echo      raw body echo (streamed through unchanged)
    POST /api/messages  JSON model in, JSON model out
    GET  /api/query     decrypted query parameters
"""

import logging
from datetime import datetime, timezone
from urllib.parse import parse_qs

from fastapi import APIRouter, Request
from fastapi.responses import Response

from bodycipher.activation import encrypted
from bodycipher.schemas.message import ErrorResponse, MessageIn, MessageOut, QueryEchoResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Encrypted"])

# Sent in plaintext by the encryption middleware
REJECTED_PAYLOAD = {
    400: {"description": "Body or query string failed to decrypt", "model": ErrorResponse},
}


@router.post(
    "/echo",
    responses=REJECTED_PAYLOAD,
    summary="Echo the decrypted request body",
    description="Returns the request body unchanged; on the wire both directions are encrypted.",
)
@encrypted
async def echo(request: Request) -> Response:
    body = await request.body()
    logger.debug("Echoing %d plaintext bytes", len(body))
    return Response(
        content=body,
        media_type=request.headers.get("content-type", "application/octet-stream"),
    )


@router.post(
    "/messages",
    status_code=201,
    response_model=MessageOut,
    responses=REJECTED_PAYLOAD,
    summary="Accept an encrypted JSON message",
)
@encrypted
async def create_message(message: MessageIn) -> MessageOut:
    """
    Accept a message and acknowledge it.

    FastAPI parses MessageIn from the already-decrypted body; a body that
    fails decryption never reaches this function.
    """
    logger.info("Accepted message from %s (%d chars)", message.sender, len(message.text))
    return MessageOut(
        sender=message.sender,
        text=message.text,
        tags=message.tags,
        length=len(message.text),
        received_at=datetime.now(timezone.utc),
    )


@router.get(
    "/query",
    response_model=QueryEchoResponse,
    responses=REJECTED_PAYLOAD,
    summary="Echo the decrypted query string",
)
@encrypted
async def query_echo(request: Request) -> QueryEchoResponse:
    query_string = request.url.query
    return QueryEchoResponse(
        query_string=query_string,
        params=parse_qs(query_string, keep_blank_values=True),
    )
