"""JWT token utilities.

Tokens are issued by the NestLedger account service. Billing only needs the
caller's id and role (``admin`` or ``tenant``) from them.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import HTTPException, status

from ...config import env
from ...config.logging import get_logger

logger = get_logger("nestledger.auth.jwt")

TOKEN_ROLES = ("admin", "tenant")


class JWTConfig:
  """JWT configuration management."""

  @staticmethod
  def get_jwt_secret() -> str:
    """Get JWT secret key."""
    secret = env.JWT_SECRET_KEY
    if not secret:
      raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="JWT secret key is not set",
      )
    return secret


def verify_jwt_token(token: str) -> Optional[Dict[str, Any]]:
  """Verify a JWT token and return its claims if valid.

  Returns:
    The decoded claims, or None when the token is expired, malformed, signed
    with another key, or carries no usable user id and role
  """
  try:
    payload = jwt.decode(
      token,
      JWTConfig.get_jwt_secret(),
      algorithms=[env.JWT_ALGORITHM],
      issuer=env.JWT_ISSUER,
      audience=env.JWT_AUDIENCE,
    )
  except jwt.ExpiredSignatureError:
    logger.info("JWT token verification failed: token expired")
    return None
  except jwt.InvalidTokenError as e:
    logger.info(f"JWT token verification failed: {type(e).__name__}")
    return None

  if not payload.get("user_id") or payload.get("role") not in TOKEN_ROLES:
    logger.info("JWT token verification failed: missing user_id or role claim")
    return None
  return payload


def create_jwt_token(user_id: str, role: str) -> str:
  """Create a JWT token for an administrator or tenant.

  Args:
    user_id: The admin or tenant id to encode in the token
    role: ``admin`` or ``tenant``

  Returns:
    The encoded JWT token
  """
  if role not in TOKEN_ROLES:
    raise ValueError(f"Unsupported token role: {role}")

  now = datetime.now(timezone.utc)
  payload = {
    "user_id": user_id,
    "role": role,
    "jti": str(uuid.uuid4()),
    "exp": now + timedelta(hours=env.JWT_EXPIRY_HOURS),
    "iat": now,
    "iss": env.JWT_ISSUER,
    "aud": env.JWT_AUDIENCE,
  }
  return jwt.encode(payload, JWTConfig.get_jwt_secret(), algorithm=env.JWT_ALGORITHM)
