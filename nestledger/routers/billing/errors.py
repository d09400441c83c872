"""Translate billing exceptions into HTTP responses."""

from fastapi import HTTPException, status

from ...exceptions import (
  AuthenticationError,
  ConfigurationError,
  GatewayError,
  InsufficientPermissionsError,
  InvalidInvoiceStateError,
  InvalidSignatureError,
  InvoiceNotFoundError,
  NestLedgerError,
  PaidInvoiceDeletionError,
  PersistenceError,
  UnsupportedGatewayError,
  ValidationError,
)

# Subclasses before their bases
STATUS_CODES = (
  (InvoiceNotFoundError, status.HTTP_404_NOT_FOUND),
  (InsufficientPermissionsError, status.HTTP_403_FORBIDDEN),
  (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
  (InvalidInvoiceStateError, status.HTTP_409_CONFLICT),
  (PaidInvoiceDeletionError, status.HTTP_409_CONFLICT),
  (InvalidSignatureError, status.HTTP_400_BAD_REQUEST),
  (UnsupportedGatewayError, status.HTTP_400_BAD_REQUEST),
  (ValidationError, status.HTTP_400_BAD_REQUEST),
  (GatewayError, status.HTTP_502_BAD_GATEWAY),
  (ConfigurationError, status.HTTP_503_SERVICE_UNAVAILABLE),
  (PersistenceError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def status_code_for(error: NestLedgerError) -> int:
  for error_type, code in STATUS_CODES:
    if isinstance(error, error_type):
      return code
  return status.HTTP_500_INTERNAL_SERVER_ERROR


def to_http_exception(error: NestLedgerError) -> HTTPException:
  return HTTPException(status_code=status_code_for(error), detail=error.to_dict())
