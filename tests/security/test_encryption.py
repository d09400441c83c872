"""Tests for gateway secret encryption."""

from unittest.mock import patch

import pytest
from cryptography.fernet import Fernet

from nestledger.exceptions import ConfigurationError
from nestledger.security import decrypt_secret, encrypt_secret, generate_encryption_key


class TestSecretEncryption:
  def test_round_trip(self):
    token = encrypt_secret("rzp_live_secret")

    assert token != "rzp_live_secret"
    assert decrypt_secret(token) == "rzp_live_secret"

  def test_tokens_are_not_deterministic(self):
    assert encrypt_secret("same") != encrypt_secret("same")

  def test_key_mismatch(self):
    foreign = Fernet(Fernet.generate_key()).encrypt(b"secret").decode()

    with pytest.raises(ConfigurationError) as exc_info:
      decrypt_secret(foreign)

    assert exc_info.value.details["config_key"] == "CREDENTIAL_ENCRYPTION_KEY"

  def test_missing_key(self):
    with patch("nestledger.security.encryption.env.CREDENTIAL_ENCRYPTION_KEY", ""):
      with pytest.raises(ConfigurationError):
        encrypt_secret("value")

  def test_malformed_key(self):
    with patch("nestledger.security.encryption.env.CREDENTIAL_ENCRYPTION_KEY", "short"):
      with pytest.raises(ConfigurationError) as exc_info:
        encrypt_secret("value")

    assert "invalid key format" in exc_info.value.details["reason"]

  def test_generated_key_is_usable(self):
    key = generate_encryption_key()

    with patch("nestledger.security.encryption.env.CREDENTIAL_ENCRYPTION_KEY", key):
      assert decrypt_secret(encrypt_secret("value")) == "value"
