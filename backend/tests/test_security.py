"""Tests for settings loading and token issuing."""
import time

import jwt

from medlab.core.config import Settings, settings
from medlab.core.security import create_access_token, create_refresh_token, decode_access_token


class TestSettings:
    def test_env_file_is_configured(self):
        assert Settings.model_config["env_file"] == ".env"

    def test_environment_overrides_defaults(self, monkeypatch):
        """Billing policy comes from the environment when set."""
        monkeypatch.setenv("CONSULTATION_FEE", "20000")
        monkeypatch.setenv("AUDIT_LOG_ENABLED", "false")
        loaded = Settings()
        assert loaded.CONSULTATION_FEE == 20000
        assert loaded.AUDIT_LOG_ENABLED is False


class TestTokens:
    def test_access_token_expires_in_the_future(self):
        """Expiry is an absolute UTC timestamp ahead of now."""
        payload = decode_access_token(create_access_token({"sub": "user-1"}))
        assert payload["sub"] == "user-1"
        assert payload["type"] == "access"
        remaining = payload["exp"] - time.time()
        assert 0 < remaining <= settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    def test_refresh_token_is_typed(self):
        payload = decode_access_token(create_refresh_token({"sub": "user-1"}))
        assert payload["type"] == "refresh"

    def test_tampered_token_is_rejected(self):
        forged = jwt.encode({"sub": "user-1", "type": "access"}, "not-the-secret", algorithm=settings.ALGORITHM)
        assert decode_access_token(forged) is None
