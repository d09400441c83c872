"""Tests for the late fee accrual task."""

from unittest.mock import MagicMock, patch

import pytest

from nestledger.tasks.billing.late_fees import apply_late_fees


class TestApplyLateFeesTask:
  """Test cases for the daily late fee Celery task."""

  @patch("nestledger.tasks.billing.late_fees.run_late_fee_accrual")
  @patch("nestledger.tasks.billing.late_fees.get_celery_db_session")
  def test_scheduled_run(self, mock_get_session, mock_run):
    mock_session = MagicMock()
    mock_get_session.return_value = mock_session
    mock_run.return_value = {"success": True, "processed": 3, "errors": [], "execution_time_ms": 12}

    result = apply_late_fees()  # type: ignore[call-arg]

    assert result == {"success": True, "processed": 3, "errors": [], "execution_time_ms": 12}
    mock_run.assert_called_once_with(mock_session, manual=False, admin_id=None)
    mock_session.close.assert_called_once()

  @patch("nestledger.tasks.billing.late_fees.run_late_fee_accrual")
  @patch("nestledger.tasks.billing.late_fees.get_celery_db_session")
  def test_manual_run_scoped_to_admin(self, mock_get_session, mock_run):
    mock_session = MagicMock()
    mock_get_session.return_value = mock_session

    apply_late_fees(manual=True, admin_id="adm_1")  # type: ignore[call-arg]

    mock_run.assert_called_once_with(mock_session, manual=True, admin_id="adm_1")

  @patch("nestledger.tasks.billing.late_fees.run_late_fee_accrual")
  @patch("nestledger.tasks.billing.late_fees.get_celery_db_session")
  def test_failure_rolls_back_and_reraises(self, mock_get_session, mock_run):
    mock_session = MagicMock()
    mock_get_session.return_value = mock_session
    mock_run.side_effect = RuntimeError("database unavailable")

    with pytest.raises(RuntimeError):
      apply_late_fees()  # type: ignore[call-arg]

    mock_session.rollback.assert_called_once()
    mock_session.close.assert_called_once()
