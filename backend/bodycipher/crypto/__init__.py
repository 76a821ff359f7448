# Crypto package init
"""
bodycipher: Crypto Layer
==========================

What:  Key/IV derivation, incremental filter stages and the encrypted ASGI
       streams built from them.

Module Inventory:
    - cipher_context.py: CipherContext (derive, new_encryptor, new_decryptor)
    - transforms.py:     base64 / CBC filter stages and FilterChain
    - streams.py:        DecryptingReader, EncryptingWriter, buffer helpers
"""

from bodycipher.crypto.cipher_context import CipherContext
from bodycipher.crypto.streams import (
    DecryptingReader,
    EncryptingWriter,
    decrypt_buffer,
    decrypt_query_string,
    encrypt_buffer,
    encrypt_query_string,
)

__all__ = [
    "CipherContext",
    "DecryptingReader",
    "EncryptingWriter",
    "decrypt_buffer",
    "decrypt_query_string",
    "encrypt_buffer",
    "encrypt_query_string",
]
