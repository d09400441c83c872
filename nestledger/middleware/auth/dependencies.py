"""Authentication dependencies for FastAPI routes."""

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ...logger import log_auth_event
from ...operations.billing.ownership import Principal, PrincipalRole
from .jwt import verify_jwt_token

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
  return HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail=detail,
    headers={"WWW-Authenticate": "Bearer"},
  )


async def get_current_principal(
  request: Request,
  credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
) -> Principal:
  """
  Resolve the caller from the bearer token.

  Raises:
      HTTPException: 401 if the token is missing or invalid
  """
  endpoint = str(request.url.path)

  if not credentials:
    log_auth_event("missing_token", success=False, metadata={"endpoint": endpoint})
    raise _unauthorized("Authentication required")

  claims = verify_jwt_token(credentials.credentials)
  if not claims:
    log_auth_event("invalid_token", success=False, metadata={"endpoint": endpoint})
    raise _unauthorized("Invalid or expired token")

  return Principal(user_id=claims["user_id"], role=PrincipalRole(claims["role"]))


async def require_admin(
  principal: Principal = Depends(get_current_principal),
) -> Principal:
  """Only administrators may call the route."""
  if not principal.is_admin:
    log_auth_event(
      "admin_required", user_id=principal.user_id, success=False
    )
    raise HTTPException(
      status_code=status.HTTP_403_FORBIDDEN,
      detail="Administrator access required",
    )
  return principal
