"""Tests for the monthly invoice generation task."""

from unittest.mock import MagicMock, patch

import pytest

from nestledger.tasks.billing.monthly_invoices import generate_monthly_invoices


class TestGenerateMonthlyInvoicesTask:
  @patch("nestledger.tasks.billing.monthly_invoices.run_monthly_invoice_generation")
  @patch("nestledger.tasks.billing.monthly_invoices.get_celery_db_session")
  def test_scheduled_run(self, mock_get_session, mock_run):
    mock_session = MagicMock()
    mock_get_session.return_value = mock_session
    mock_run.return_value = {"success": True, "processed": 12, "errors": [], "execution_time_ms": 40}

    result = generate_monthly_invoices()  # type: ignore[call-arg]

    assert result["processed"] == 12
    mock_run.assert_called_once_with(mock_session, manual=False, admin_id=None)
    mock_session.close.assert_called_once()

  @patch("nestledger.tasks.billing.monthly_invoices.run_monthly_invoice_generation")
  @patch("nestledger.tasks.billing.monthly_invoices.get_celery_db_session")
  def test_manual_run_for_one_admin(self, mock_get_session, mock_run):
    mock_session = MagicMock()
    mock_get_session.return_value = mock_session
    mock_run.return_value = {
      "success": True,
      "processed": 4,
      "errors": [{"id": "ten_9", "error": "rent not set"}],
      "execution_time_ms": 25,
    }

    result = generate_monthly_invoices(manual=True, admin_id="adm_1")  # type: ignore[call-arg]

    assert result["errors"][0]["id"] == "ten_9"
    mock_run.assert_called_once_with(mock_session, manual=True, admin_id="adm_1")

  @patch("nestledger.tasks.billing.monthly_invoices.run_monthly_invoice_generation")
  @patch("nestledger.tasks.billing.monthly_invoices.get_celery_db_session")
  def test_failure_rolls_back(self, mock_get_session, mock_run):
    mock_session = MagicMock()
    mock_get_session.return_value = mock_session
    mock_run.side_effect = RuntimeError("boom")

    with pytest.raises(RuntimeError):
      generate_monthly_invoices()  # type: ignore[call-arg]

    mock_session.rollback.assert_called_once()
    mock_session.close.assert_called_once()
