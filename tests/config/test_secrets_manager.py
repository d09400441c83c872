"""Tests for Secrets Manager lookups."""

import json
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from nestledger.config.secrets_manager import (
  SECRET_MAPPINGS,
  SecretsManager,
  get_secret_value,
)


@pytest.fixture
def mock_client():
  with patch("nestledger.config.secrets_manager.boto3.client") as mock_boto:
    client = MagicMock()
    mock_boto.return_value = client
    yield client


class TestSecretsManager:
  def test_non_deployed_environment_skips_aws(self, mock_client):
    manager = SecretsManager(environment="dev")

    assert manager.get_secret() == {}
    mock_client.get_secret_value.assert_not_called()

  def test_cached_within_ttl(self, mock_client):
    mock_client.get_secret_value.return_value = {
      "SecretString": json.dumps({"RAZORPAY_KEY_ID": "rzp_live_platform"})
    }
    manager = SecretsManager(environment="prod")

    assert manager.get_secret()["RAZORPAY_KEY_ID"] == "rzp_live_platform"
    manager.get_secret()

    mock_client.get_secret_value.assert_called_once_with(SecretId="nestledger/prod")

  def test_extension_secret_id(self, mock_client):
    mock_client.get_secret_value.return_value = {
      "SecretString": json.dumps({"DATABASE_URL": "postgresql://db"})
    }

    SecretsManager(environment="staging").get_secret("postgres")

    mock_client.get_secret_value.assert_called_once_with(
      SecretId="nestledger/staging/postgres"
    )

  def test_missing_secret_returns_empty(self, mock_client):
    mock_client.get_secret_value.side_effect = ClientError(
      {"Error": {"Code": "ResourceNotFoundException"}}, "GetSecretValue"
    )

    assert SecretsManager(environment="prod").get_secret() == {}

  def test_other_errors_raise(self, mock_client):
    mock_client.get_secret_value.side_effect = ClientError(
      {"Error": {"Code": "AccessDeniedException"}}, "GetSecretValue"
    )

    with pytest.raises(ClientError):
      SecretsManager(environment="prod").get_secret()


class TestGetSecretValue:
  def test_environment_variable_wins(self, monkeypatch):
    monkeypatch.setenv("CASHFREE_APP_ID", "cf_from_env")

    assert get_secret_value("CASHFREE_APP_ID", "default") == "cf_from_env"

  def test_default_outside_deployed_environments(self, monkeypatch):
    monkeypatch.delenv("UNSET_SECRET", raising=False)

    assert get_secret_value("UNSET_SECRET", "fallback") == "fallback"

  def test_database_url_lives_in_postgres_secret(self):
    assert SECRET_MAPPINGS["DATABASE_URL"] == ("postgres", "DATABASE_URL")
