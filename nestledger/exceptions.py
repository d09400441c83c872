"""
Custom Exception Types for NestLedger.

Every error raised by the billing core derives from NestLedgerError and
carries a machine-readable error code plus structured details so routers and
batch jobs can report it without parsing messages.
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class NestLedgerError(Exception):
  """
  Base exception for all NestLedger application errors.

  Attributes:
      message: Human-readable error message
      error_code: Application-specific error code for categorization
      details: Additional error context and metadata
      timestamp: When the error occurred
  """

  def __init__(
    self,
    message: str,
    error_code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
  ):
    super().__init__(message)
    self.message = message
    self.error_code = error_code or self.__class__.__name__
    self.details = details or {}
    self.timestamp = datetime.now(timezone.utc).isoformat()

  def to_dict(self) -> Dict[str, Any]:
    """Convert exception to dictionary for API responses."""
    return {
      "error": self.error_code,
      "message": self.message,
      "details": self.details,
      "timestamp": self.timestamp,
    }


# ============================================================================
# Validation Exceptions
# ============================================================================


class ValidationError(NestLedgerError):
  """Raised when caller input is rejected before any state change."""

  def __init__(self, message: str, field: Optional[str] = None, **kwargs):
    details = {"field": field} if field else {}
    details.update(kwargs)
    super().__init__(message, error_code="VALIDATION_ERROR", details=details)


class InvalidInvoiceStateError(ValidationError):
  """Raised when an operation is not allowed in the invoice's current status."""

  def __init__(self, invoice_id: str, status: str, operation: str):
    super().__init__(
      f"Cannot {operation} invoice in status '{status}'",
      invoice_id=invoice_id,
      status=status,
      operation=operation,
    )
    self.error_code = "INVALID_INVOICE_STATE"


# ============================================================================
# Entity Exceptions
# ============================================================================


class InvoiceNotFoundError(NestLedgerError):
  """Raised when an invoice is not found."""

  def __init__(self, invoice_id: str):
    super().__init__(
      f"Invoice with ID '{invoice_id}' not found",
      error_code="INVOICE_NOT_FOUND",
      details={"invoice_id": invoice_id},
    )


class PaidInvoiceDeletionError(NestLedgerError):
  """Raised when deleting a paid invoice without the privileged override."""

  def __init__(self, invoice_id: str):
    super().__init__(
      "Paid invoices carry a payment trail and can only be deleted with a "
      "privileged override",
      error_code="PAID_INVOICE_DELETION_FORBIDDEN",
      details={"invoice_id": invoice_id},
    )


# ============================================================================
# Authentication and Authorization Exceptions
# ============================================================================


class AuthError(NestLedgerError):
  """Base exception for authentication/authorization errors."""

  pass


class AuthenticationError(AuthError):
  """Raised when authentication fails."""

  def __init__(self, reason: str = "Invalid credentials"):
    super().__init__(
      reason,
      error_code="AUTHENTICATION_FAILED",
      details={"auth_type": "bearer"},
    )


class InsufficientPermissionsError(AuthError):
  """Raised when the caller does not own the resource being accessed."""

  def __init__(
    self,
    required_permission: str,
    resource: Optional[str] = None,
    user_id: Optional[str] = None,
  ):
    details = {"required_permission": required_permission}
    if resource:
      details["resource"] = resource
    if user_id:
      details["user_id"] = user_id
    super().__init__(
      f"Insufficient permissions: {required_permission} required",
      error_code="INSUFFICIENT_PERMISSIONS",
      details=details,
    )


# ============================================================================
# External Service Exceptions
# ============================================================================


class ExternalServiceError(NestLedgerError):
  """Base exception for external service failures."""

  def __init__(
    self,
    service: str,
    message: str,
    status_code: Optional[int] = None,
    error_code: str = "EXTERNAL_SERVICE_ERROR",
    **kwargs,
  ):
    details = {"service": service}
    if status_code:
      details["status_code"] = str(status_code)
    details.update(kwargs)
    super().__init__(message, error_code=error_code, details=details)


class GatewayError(ExternalServiceError):
  """
  Raised when a payment gateway call or callback cannot be completed.

  The invoice involved is always left untouched. ``retryable`` tells the
  caller whether repeating the same request may succeed.
  """

  def __init__(
    self,
    gateway: str,
    message: str,
    retryable: bool = True,
    status_code: Optional[int] = None,
    **kwargs,
  ):
    super().__init__(
      service=gateway,
      message=message,
      status_code=status_code,
      error_code="GATEWAY_ERROR",
      retryable=retryable,
      **kwargs,
    )
    self.gateway = gateway
    self.retryable = retryable


class GatewayTimeoutError(GatewayError):
  """Raised when the gateway did not answer in time. Never implies success."""

  def __init__(self, gateway: str, operation: str):
    super().__init__(
      gateway,
      f"{gateway} timed out during {operation}",
      retryable=True,
      operation=operation,
    )
    self.error_code = "GATEWAY_TIMEOUT"


class InvalidSignatureError(GatewayError):
  """Raised when a callback or webhook fails signature verification."""

  def __init__(self, gateway: str, reason: str = "Signature mismatch"):
    super().__init__(gateway, reason, retryable=False)
    self.error_code = "INVALID_SIGNATURE"


class UnsupportedGatewayError(GatewayError):
  """Raised when an unknown gateway name is requested."""

  def __init__(self, gateway: str):
    super().__init__(gateway, f"Unsupported payment gateway: {gateway}", retryable=False)
    self.error_code = "UNSUPPORTED_GATEWAY"


# ============================================================================
# Reconciliation and Persistence Exceptions
# ============================================================================


class ReconciliationConflict(NestLedgerError):
  """
  Raised internally when a payment event targets an already-settled invoice.

  Never surfaced to callers: the recorder resolves it into an idempotent
  no-op and logs it.
  """

  def __init__(self, invoice_id: str, reason: str, **kwargs):
    super().__init__(
      f"Reconciliation conflict for invoice '{invoice_id}': {reason}",
      error_code="RECONCILIATION_CONFLICT",
      details={"invoice_id": invoice_id, "reason": reason, **kwargs},
    )


class PersistenceError(NestLedgerError):
  """Raised when the database rejects a single billing operation."""

  def __init__(self, operation: str, reason: str, **kwargs):
    super().__init__(
      f"Persistence failure during {operation}: {reason}",
      error_code="PERSISTENCE_ERROR",
      details={"operation": operation, "reason": reason, **kwargs},
    )


# ============================================================================
# Configuration Exceptions
# ============================================================================


class ConfigurationError(NestLedgerError):
  """Raised when there are configuration issues."""

  def __init__(self, config_key: str, reason: str):
    super().__init__(
      f"Configuration error for '{config_key}': {reason}",
      error_code="CONFIGURATION_ERROR",
      details={"config_key": config_key, "reason": reason},
    )
