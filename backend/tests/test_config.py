"""
bodycipher: Settings Tests
============================

What:  Tests for Settings parsing and the startup secret check.
"""

import pytest
from pydantic import ValidationError

from bodycipher.config import Settings
from bodycipher.exceptions import ConfigurationError


class TestSettings:
    def test_secret_read_from_environment(self, monkeypatch):
        monkeypatch.setenv("ENCRYPTION_SECRET", "from-env")
        assert Settings().require_encryption_secret() == "from-env"

    def test_missing_secret_raises(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Settings(encryption_secret="").require_encryption_secret()
        assert exc_info.value.setting == "encryption_secret"

    def test_secret_is_masked(self):
        s = Settings(encryption_secret="hunter2")
        assert "hunter2" not in repr(s)
        assert "hunter2" not in str(s.encryption_secret)

    def test_encrypted_paths_list(self):
        s = Settings(encrypted_paths=" /api/a, /api/b ,,")
        assert s.encrypted_paths_list == ["/api/a", "/api/b"]

    def test_encrypted_paths_default_empty(self):
        assert Settings(encrypted_paths="").encrypted_paths_list == []

    def test_log_level_normalized(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(log_level="LOUD")
