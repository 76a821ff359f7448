"""
bodycipher: Test Configuration (conftest.py)
==============================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Inventory:
    ├── secret / cipher_context: the shared secret and its derived context
    ├── make_receive: builds a fake ASGI `receive` from body chunks
    ├── send_recorder: fake ASGI `send` that records every message
    ├── test_client: plain HTTPX AsyncClient against the app (sees ciphertext)
    └── encrypted_client: EncryptedClient against the app (sees plaintext)
"""

import os

# Override settings for testing BEFORE any app imports
os.environ["ENCRYPTION_SECRET"] = "test-transport-secret"
os.environ["ENCRYPTED_PATHS"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

from typing import Any, Dict, List  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from bodycipher.client import EncryptedClient  # noqa: E402
from bodycipher.crypto.cipher_context import CipherContext  # noqa: E402

TEST_SECRET = os.environ["ENCRYPTION_SECRET"]


class SendRecorder:
    """Fake ASGI send callable; keeps every message it was given."""

    def __init__(self) -> None:
        self.messages: List[Dict[str, Any]] = []

    async def __call__(self, message: Dict[str, Any]) -> None:
        self.messages.append(message)

    @property
    def body(self) -> bytes:
        return b"".join(
            m.get("body", b"") for m in self.messages if m["type"] == "http.response.body"
        )

    @property
    def body_messages(self) -> List[Dict[str, Any]]:
        return [m for m in self.messages if m["type"] == "http.response.body"]

    @property
    def start(self) -> Dict[str, Any]:
        return next(m for m in self.messages if m["type"] == "http.response.start")


@pytest.fixture
def secret() -> str:
    return TEST_SECRET


@pytest.fixture
def cipher_context(secret) -> CipherContext:
    return CipherContext.derive(secret)


@pytest.fixture
def make_receive():
    """
    Returns a factory: make_receive([b"chunk1", b"chunk2"]) gives an async
    receive() that yields those chunks as http.request messages and then
    http.disconnect forever.
    """

    def factory(chunks: List[bytes]):
        messages = [
            {"type": "http.request", "body": chunk, "more_body": i < len(chunks) - 1}
            for i, chunk in enumerate(chunks)
        ] or [{"type": "http.request", "body": b"", "more_body": False}]

        async def receive() -> Dict[str, Any]:
            if messages:
                return messages.pop(0)
            return {"type": "http.disconnect"}

        return receive

    return factory


@pytest.fixture
def send_recorder() -> SendRecorder:
    return SendRecorder()


@pytest.fixture
def app():
    from bodycipher.main import app
    return app


@pytest_asyncio.fixture
async def test_client(app):
    """HTTPX client talking to the app over ASGI; bodies are NOT decrypted."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def encrypted_client(test_client, cipher_context):
    """EncryptedClient sharing the test client's transport."""
    client = EncryptedClient(cipher_context, http_client=test_client)
    yield client
    await client.aclose()
