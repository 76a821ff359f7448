"""
bodycipher: Custom Exception Hierarchy
========================================

What:  Application-specific exceptions for the transport-encryption layer.
How:   Each exception carries a user-facing message and an optional context dict.
       The encryption middleware turns DecodingError and PaddingError into
       HTTP 400 responses; ConfigurationError stops the app factory at startup.
Who:   Raised by the crypto transforms, the settings object and the app factory.

Exception Hierarchy:
    BodyCipherError (base)
    ├── DecodingError       → 400 Bad Request (payload is not valid base64)
    ├── PaddingError        → 400 Bad Request (ciphertext length/padding invalid)
    └── ConfigurationError  → startup failure (no secret, or unresolvable endpoints)

    None of these are retried: encryption and decryption are deterministic,
    a second attempt on the same input fails the same way.
"""

from typing import Any, Dict, Optional


class BodyCipherError(Exception):
    """
    Base exception for all bodycipher errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class DecodingError(BodyCipherError):
    """
    Raised when an encrypted payload is not valid base64.

    When:    Request body or query string contains characters outside the
             base64 alphabet, data after '=' padding, or a truncated quantum.
    HTTP:    400 Bad Request

    Example response:
        {
            "error": "decoding_error",
            "message": "Encrypted payload is not valid base64",
            "request_id": "a1b2c3d4"
        }
    """

    def __init__(
        self,
        message: str = "Encrypted payload is not valid base64",
        source: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if source:
            ctx["source"] = source
        super().__init__(message=message, context=ctx)
        self.source = source


class PaddingError(BodyCipherError):
    """
    Raised when decrypted ciphertext cannot be unpadded.

    When:    Ciphertext length is not a multiple of the AES block size, or the
             trailing PKCS7 padding bytes are invalid (wrong key, corrupted data).
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Encrypted payload has invalid block padding",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ConfigurationError(BodyCipherError):
    """
    Raised at startup when the service cannot guarantee encryption.

    When:    ENCRYPTION_SECRET is missing or empty, an ENCRYPTED_PATHS entry
             matches no route, or a marked endpoint sits where the
             activation registry cannot see it.
    Recovery:
        Fix the named setting (environment or .env file) and restart.
    """

    def __init__(
        self,
        message: str = "ENCRYPTION_SECRET is not configured",
        setting: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if setting:
            ctx["setting"] = setting
        super().__init__(message=message, context=ctx)
        self.setting = setting
