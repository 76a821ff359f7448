"""
bodycipher: Cipher Context
============================

What:  Turns one configured secret into a stable AES-256 key / IV pair and
       hands out fresh CBC transforms bound to them.
How:   The secret is right-padded with '0' to 32 characters, UTF-8 encoded,
       and cut into key = bytes[:32] and IV = bytes[:16].
Who:   Built once by the app factory and shared with every request.

Known Limitations (kept for wire compatibility with existing clients):
    - The IV is fixed and derived from the same secret as the key, so equal
      plaintexts always produce equal ciphertexts.
    - A secret shorter than 16 characters leaves long runs of '0' in both
      key and IV.
    - There is no integrity tag; CBC alone does not detect tampering beyond
      what the padding check catches.
"""

from dataclasses import dataclass, field

from bodycipher.crypto.transforms import CbcDecryptStage, CbcEncryptStage

KEY_SIZE = 32
IV_SIZE = 16
PAD_CHAR = "0"


@dataclass(frozen=True)
class CipherContext:
    """
    Immutable key / IV holder.

    Safe to share across concurrent requests: it never changes after
    construction and every call to new_encryptor() / new_decryptor()
    returns an independent transform.
    """

    key: bytes = field(repr=False)
    iv: bytes = field(repr=False)

    def __post_init__(self) -> None:
        if len(self.key) != KEY_SIZE:
            raise ValueError(f"key must be {KEY_SIZE} bytes, got {len(self.key)}")
        if len(self.iv) != IV_SIZE:
            raise ValueError(f"iv must be {IV_SIZE} bytes, got {len(self.iv)}")

    @classmethod
    def derive(cls, secret: str) -> "CipherContext":
        """
        Derive a context from a secret of any length (including empty).

        Example:
            "mysecret" → "mysecret000000000000000000000000"
            key = all 32 bytes, iv = "mysecret00000000"
        """
        material = secret.ljust(KEY_SIZE, PAD_CHAR).encode("utf-8")
        return cls(key=material[:KEY_SIZE], iv=material[:IV_SIZE])

    def new_encryptor(self) -> CbcEncryptStage:
        """One-shot encrypting transform; do not reuse across streams."""
        return CbcEncryptStage(self.key, self.iv)

    def new_decryptor(self) -> CbcDecryptStage:
        """One-shot decrypting transform; do not reuse across streams."""
        return CbcDecryptStage(self.key, self.iv)
