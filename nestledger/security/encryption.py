"""
Encryption of administrator-owned gateway secrets.

Administrators running their own gateway account (OWN payment mode) store
their key secret and webhook secret with us. Those values are encrypted with
Fernet (AES-128-CBC + HMAC) using CREDENTIAL_ENCRYPTION_KEY and only
decrypted at the moment a GatewayConfig is built for a request.
"""

from cryptography.fernet import Fernet, InvalidToken

from nestledger.config import env
from nestledger.exceptions import ConfigurationError
from nestledger.logger import logger


def _get_fernet() -> Fernet:
  """
  Build the Fernet instance from configuration.

  Raises:
      ConfigurationError: If the key is not set or has invalid format
  """
  encryption_key = env.CREDENTIAL_ENCRYPTION_KEY

  if not encryption_key:
    raise ConfigurationError(
      "CREDENTIAL_ENCRYPTION_KEY",
      "must be set to store administrator gateway credentials",
    )

  try:
    return Fernet(encryption_key.encode("utf-8"))
  except ValueError as e:
    raise ConfigurationError("CREDENTIAL_ENCRYPTION_KEY", f"invalid key format: {e}")


def encrypt_secret(value: str) -> str:
  """Encrypt a secret and return the token as text for storage."""
  token = _get_fernet().encrypt(value.encode("utf-8"))
  return token.decode("utf-8")


def decrypt_secret(token: str) -> str:
  """
  Decrypt a stored secret.

  Raises:
      ConfigurationError: If the token was produced with a different key
  """
  try:
    return _get_fernet().decrypt(token.encode("utf-8")).decode("utf-8")
  except InvalidToken:
    logger.error("Failed to decrypt stored gateway secret (key mismatch)")
    raise ConfigurationError(
      "CREDENTIAL_ENCRYPTION_KEY", "stored secret cannot be decrypted"
    )


def generate_encryption_key() -> str:
  """Generate a new Fernet key suitable for CREDENTIAL_ENCRYPTION_KEY."""
  return Fernet.generate_key().decode("utf-8")
