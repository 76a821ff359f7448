"""
bodycipher: Incremental Filter Stages
=======================================

What:  Byte transforms that can be fed a body chunk at a time.
How:   Every stage exposes update(data) -> bytes and finalize() -> bytes.
       update() may hold back bytes it cannot emit yet (partial base64
       quanta, partial AES blocks, the last plaintext block while padding is
       still unknown); finalize() flushes them. A FilterChain layers stages so
       the output of one feeds the next.

Stage Inventory:
    Base64EncodeStage  bytes      → base64 text
    Base64DecodeStage  base64     → bytes     (whitespace ignored)
    CbcEncryptStage    plaintext  → ciphertext (PKCS7 pad, AES-CBC)
    CbcDecryptStage    ciphertext → plaintext  (AES-CBC, PKCS7 unpad)

Composition:
    write path: handler → CbcEncryptStage → Base64EncodeStage → wire
    read path:  wire → Base64DecodeStage → CbcDecryptStage → handler
"""

import base64
import binascii
import re
from typing import Iterable, List

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from bodycipher.exceptions import DecodingError, PaddingError

# AES block size in bits, as PKCS7 expects it
BLOCK_SIZE_BITS = algorithms.AES.block_size

_WHITESPACE = re.compile(rb"\s+")
_BASE64_QUANTUM = re.compile(rb"^[A-Za-z0-9+/]*={0,2}$")


class FilterStage:
    """Base class for one-shot incremental transforms."""

    def __init__(self) -> None:
        self._finalized = False

    def update(self, data: bytes) -> bytes:
        self._check_open()
        return self._update(data)

    def finalize(self) -> bytes:
        self._check_open()
        self._finalized = True
        return self._finalize()

    @property
    def finalized(self) -> bool:
        return self._finalized

    def _check_open(self) -> None:
        if self._finalized:
            raise RuntimeError(f"{type(self).__name__} has already been finalized")

    def _update(self, data: bytes) -> bytes:
        raise NotImplementedError

    def _finalize(self) -> bytes:
        raise NotImplementedError


class Base64EncodeStage(FilterStage):
    """Standard base64 encoder that only emits complete 4-character groups."""

    def __init__(self) -> None:
        super().__init__()
        self._pending = b""

    def _update(self, data: bytes) -> bytes:
        data = self._pending + data
        usable = len(data) - len(data) % 3
        self._pending = data[usable:]
        return base64.b64encode(data[:usable])

    def _finalize(self) -> bytes:
        tail, self._pending = self._pending, b""
        return base64.b64encode(tail)


class Base64DecodeStage(FilterStage):
    """
    Strict base64 decoder.

    Whitespace anywhere in the input is skipped. Anything else outside the
    standard alphabet, data following '=' padding, or a trailing partial
    quantum raises DecodingError.
    """

    def __init__(self, source: str = "body") -> None:
        super().__init__()
        self._pending = b""
        self._padded = False
        self.source = source

    def _update(self, data: bytes) -> bytes:
        data = self._pending + _WHITESPACE.sub(b"", data)
        if not data:
            return b""
        if self._padded:
            raise DecodingError("Encrypted payload continues after base64 padding", source=self.source)
        usable = len(data) - len(data) % 4
        self._pending = data[usable:]
        return self._decode(data[:usable])

    def _finalize(self) -> bytes:
        if self._pending:
            raise DecodingError(
                "Encrypted payload ends with an incomplete base64 group",
                source=self.source,
                context={"dangling_chars": len(self._pending)},
            )
        return b""

    def _decode(self, chunk: bytes) -> bytes:
        if not chunk:
            return b""
        if not _BASE64_QUANTUM.match(chunk):
            raise DecodingError(source=self.source)
        try:
            decoded = base64.b64decode(chunk, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodingError(source=self.source, context={"reason": str(e)}) from e
        if chunk.endswith(b"="):
            self._padded = True
        return decoded


class CbcEncryptStage(FilterStage):
    """AES-CBC encryption with PKCS7 padding applied on finalize."""

    def __init__(self, key: bytes, iv: bytes) -> None:
        super().__init__()
        self._padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
        self._encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()

    def _update(self, data: bytes) -> bytes:
        return self._encryptor.update(self._padder.update(data))

    def _finalize(self) -> bytes:
        out = self._encryptor.update(self._padder.finalize())
        return out + self._encryptor.finalize()


class CbcDecryptStage(FilterStage):
    """
    AES-CBC decryption with PKCS7 unpadding.

    The unpadder holds back the last decrypted block until finalize(), so
    plaintext from a corrupted final block never leaves this stage. An input
    of zero bytes decrypts to zero bytes.
    """

    def __init__(self, key: bytes, iv: bytes) -> None:
        super().__init__()
        self._unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
        self._decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        self._seen = 0

    def _update(self, data: bytes) -> bytes:
        self._seen += len(data)
        return self._unpadder.update(self._decryptor.update(data))

    def _finalize(self) -> bytes:
        if self._seen == 0:
            return b""
        try:
            tail = self._decryptor.finalize()
        except ValueError as e:
            raise PaddingError(
                "Encrypted payload length is not a multiple of the block size",
                context={"ciphertext_bytes": self._seen},
            ) from e
        try:
            return self._unpadder.update(tail) + self._unpadder.finalize()
        except ValueError as e:
            raise PaddingError(context={"ciphertext_bytes": self._seen}) from e


class FilterChain(FilterStage):
    """
    Layers stages so each one consumes the previous one's output.

    finalize() flushes the first stage, pushes its tail through the rest,
    then flushes the second stage, and so on down the chain.
    """

    def __init__(self, stages: Iterable[FilterStage]) -> None:
        super().__init__()
        self.stages: List[FilterStage] = list(stages)

    def _update(self, data: bytes) -> bytes:
        for stage in self.stages:
            data = stage.update(data)
        return data

    def _finalize(self) -> bytes:
        out = b""
        for stage in self.stages:
            out = stage.update(out) + stage.finalize()
        return out
