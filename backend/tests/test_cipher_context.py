"""
bodycipher: Cipher Context Unit Tests
=======================================

What:  Key/IV derivation and the encrypt/decrypt transforms it hands out.

Test Strategy:
    ✅ Concrete derivation for a short secret ("mysecret")
    ✅ Padding stability and truncation of long secrets
    ✅ Round trip and determinism (fixed IV is intentional and verified)
    ✅ Transforms are independent one-shot objects
"""

import base64

import pytest

from bodycipher.crypto.cipher_context import IV_SIZE, KEY_SIZE, CipherContext
from bodycipher.crypto.streams import decrypt_buffer, encrypt_buffer
from bodycipher.exceptions import PaddingError


class TestDerive:
    """Tests for CipherContext.derive()."""

    def test_short_secret_is_right_padded_with_zeros(self):
        """'mysecret' pads to 32 chars; IV is the first 16 of the same value."""
        ctx = CipherContext.derive("mysecret")
        assert ctx.key == b"mysecret000000000000000000000000"
        assert ctx.iv == b"mysecret00000000"

    def test_sizes_are_fixed(self):
        for secret in ["", "x", "a" * 16, "b" * 32, "c" * 100]:
            ctx = CipherContext.derive(secret)
            assert len(ctx.key) == KEY_SIZE
            assert len(ctx.iv) == IV_SIZE

    def test_empty_secret_is_all_padding(self):
        ctx = CipherContext.derive("")
        assert ctx.key == b"0" * 32
        assert ctx.iv == b"0" * 16

    def test_long_secret_is_truncated(self):
        secret = "0123456789abcdefghijklmnopqrstuvwxyzEXTRA"
        ctx = CipherContext.derive(secret)
        assert ctx.key == secret[:32].encode()
        assert ctx.iv == secret[:16].encode()

    def test_padding_stability(self):
        """Explicit '0' padding that reaches the same 32-char prefix derives the same context."""
        base = CipherContext.derive("mysecret")
        assert CipherContext.derive("mysecret" + "0" * 5) == base
        assert CipherContext.derive("mysecret" + "0" * 24) == base
        assert CipherContext.derive("mysecret" + "0" * 40) == base

    def test_different_secrets_differ(self):
        assert CipherContext.derive("alpha") != CipherContext.derive("bravo")

    def test_multibyte_secret_uses_utf8_bytes(self):
        ctx = CipherContext.derive("clé")
        assert ctx.key.startswith("clé".encode("utf-8"))
        assert len(ctx.key) == KEY_SIZE

    def test_repr_hides_key_material(self):
        ctx = CipherContext.derive("mysecret")
        assert "mysecret" not in repr(ctx)

    def test_context_is_immutable(self):
        ctx = CipherContext.derive("mysecret")
        with pytest.raises(AttributeError):
            ctx.key = b"x" * 32

    def test_rejects_wrong_sizes(self):
        with pytest.raises(ValueError, match="key must be"):
            CipherContext(key=b"short", iv=b"0" * 16)
        with pytest.raises(ValueError, match="iv must be"):
            CipherContext(key=b"0" * 32, iv=b"short")


class TestTransforms:
    """Tests for new_encryptor() / new_decryptor()."""

    def test_hello_scenario(self):
        """encrypt('hello') with 'mysecret' base64-decodes and decrypts to exactly 'hello'."""
        ctx = CipherContext.derive("mysecret")
        wire = encrypt_buffer(ctx, b"hello")

        raw = base64.b64decode(wire, validate=True)
        assert len(raw) == 16  # one padded AES block

        decryptor = ctx.new_decryptor()
        assert decryptor.update(raw) + decryptor.finalize() == b"hello"

    @pytest.mark.parametrize(
        "plaintext",
        [b"", b"a", b"x" * 15, b"y" * 16, b"z" * 17, bytes(range(256)) * 3],
    )
    def test_round_trip(self, cipher_context, plaintext):
        assert decrypt_buffer(cipher_context, encrypt_buffer(cipher_context, plaintext)) == plaintext

    def test_round_trip_across_secrets(self):
        for secret in ["", "s", "mysecret", "a much longer secret than thirty-two characters"]:
            ctx = CipherContext.derive(secret)
            assert decrypt_buffer(ctx, encrypt_buffer(ctx, b"payload")) == b"payload"

    def test_encryption_is_deterministic(self, cipher_context):
        """Fixed key/IV: the same plaintext always gives the same ciphertext."""
        first = encrypt_buffer(cipher_context, b"same message")
        second = encrypt_buffer(cipher_context, b"same message")
        assert first == second

    def test_ciphertext_is_block_aligned(self, cipher_context):
        encryptor = cipher_context.new_encryptor()
        out = encryptor.update(b"x" * 20) + encryptor.finalize()
        assert len(out) == 32

    def test_each_call_returns_fresh_transform(self, cipher_context):
        first = cipher_context.new_encryptor()
        second = cipher_context.new_encryptor()
        assert first is not second

        first.update(b"partial state")
        # second is unaffected by first's buffered state
        assert second.update(b"x" * 16) + second.finalize() == _encrypt_raw(
            cipher_context, b"x" * 16
        )

    def test_transform_cannot_be_reused_after_finalize(self, cipher_context):
        encryptor = cipher_context.new_encryptor()
        encryptor.finalize()
        with pytest.raises(RuntimeError, match="already been finalized"):
            encryptor.update(b"more")

    def test_wrong_key_does_not_yield_plaintext(self, cipher_context):
        wire = encrypt_buffer(cipher_context, b"secret data for someone else")
        other = CipherContext.derive("a different secret entirely")
        try:
            result = decrypt_buffer(other, wire)
        except PaddingError:
            return
        assert result != b"secret data for someone else"


def _encrypt_raw(ctx: CipherContext, data: bytes) -> bytes:
    encryptor = ctx.new_encryptor()
    return encryptor.update(data) + encryptor.finalize()
