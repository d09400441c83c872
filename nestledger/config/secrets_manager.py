"""
AWS Secrets Manager integration for dynamic secret retrieval.

Secrets are organized per environment:
- Base secret: `nestledger/{environment}`
  Contains: JWT_SECRET_KEY, CREDENTIAL_ENCRYPTION_KEY and platform gateway keys
  (RAZORPAY_*, CASHFREE_*).
- Extension secrets: `nestledger/{environment}/{type}`
  - `/postgres`: DATABASE_URL

For prod/staging the secrets are fetched and cached with a TTL. In every other
environment the lookup falls straight through to environment variables.
"""

import json
import logging
import os
import time
from typing import Any, Dict, Optional, Tuple

import boto3
from botocore.exceptions import ClientError

# Use standard logging to avoid circular import with nestledger.logger
logger = logging.getLogger(__name__)


class SecretsManager:
  """Manages retrieval of secrets from AWS Secrets Manager."""

  def __init__(
    self,
    environment: Optional[str] = None,
    region: Optional[str] = None,
    cache_ttl_seconds: int = 3600,
  ):
    self.environment = environment or os.getenv("ENVIRONMENT", "dev")
    self.region = region or os.getenv("AWS_REGION", "ap-south-1")
    self.cache_ttl_seconds = cache_ttl_seconds

    self.client = boto3.client("secretsmanager", region_name=self.region)

    # {cache_key: (secret_data, timestamp)}
    self._cache: Dict[str, Tuple[Dict[str, Any], float]] = {}

  def get_secret(self, secret_type: Optional[str] = None) -> Dict[str, Any]:
    """
    Retrieve a secret from AWS Secrets Manager with TTL-based caching.

    Args:
        secret_type: Optional type of secret (e.g. "postgres").
                    If None, retrieves the base environment secret.

    Returns:
        Dictionary containing secret values.
    """
    if self.environment not in ["prod", "staging"]:
      return {}

    cache_key = f"{self.environment}/{secret_type}" if secret_type else self.environment

    if cache_key in self._cache:
      secret_data, timestamp = self._cache[cache_key]
      if time.time() - timestamp < self.cache_ttl_seconds:
        return secret_data
      del self._cache[cache_key]
      logger.info(f"Cache expired for secret: {cache_key}")

    if secret_type:
      secret_id = f"nestledger/{self.environment}/{secret_type}"
    else:
      secret_id = f"nestledger/{self.environment}"

    try:
      response = self.client.get_secret_value(SecretId=secret_id)

      if "SecretString" not in response:
        raise ValueError(f"Binary secret not supported for {secret_id}")
      secret_data = json.loads(response["SecretString"])

      self._cache[cache_key] = (secret_data, time.time())

      logger.info(f"Successfully retrieved secret: {secret_id}")
      return secret_data

    except ClientError as e:
      error_code = e.response.get("Error", {}).get("Code", "Unknown")

      if error_code == "ResourceNotFoundException":
        logger.warning(f"Secret not found: {secret_id}")
        return {}

      logger.error(f"Error retrieving secret {secret_id}: {error_code}")
      raise


_secrets_manager: Optional[SecretsManager] = None


def get_secrets_manager() -> SecretsManager:
  """Get or create the global secrets manager instance."""
  global _secrets_manager
  if _secrets_manager is None:
    _secrets_manager = SecretsManager()
  return _secrets_manager


# Keys that live in an extension secret rather than the base secret.
# Format: key -> (secret_type, key within that secret)
SECRET_MAPPINGS = {
  "DATABASE_URL": ("postgres", "DATABASE_URL"),
}


def get_secret_value(key: str, default: str = "") -> str:
  """
  Get a specific secret value.

  Environment variables always win. In prod/staging the value is otherwise
  looked up in AWS Secrets Manager; everywhere else the default is returned.

  Args:
      key: The key name to retrieve (e.g. "JWT_SECRET_KEY", "DATABASE_URL")
      default: Default value if not found

  Returns:
      The secret value or default
  """
  env_value = os.getenv(key)
  if env_value:
    return env_value

  environment = os.getenv("ENVIRONMENT", "dev")
  if environment not in ["prod", "staging"]:
    return default

  try:
    manager = get_secrets_manager()

    if key in SECRET_MAPPINGS:
      secret_type, secret_key = SECRET_MAPPINGS[key]
      return manager.get_secret(secret_type).get(secret_key, default)

    return manager.get_secret().get(key, default)

  except (ClientError, ValueError) as e:
    logger.warning(f"Failed to retrieve secret '{key}' from Secrets Manager: {e}")
    return default
