"""
JWT Token Management
====================

Handles JWT token creation, validation, and decoding for site sessions.

Version: 0.1.0
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from pydantic import BaseModel, Field, ValidationError

from shared.auth.roles import Role
from shared.config import settings
from shared.logging import get_logger


logger = get_logger(__name__)


class TokenData(BaseModel):
    """Decoded JWT token payload."""

    sub: str = Field(..., description="Subject (member ID)")
    role: Role = Field(..., description="Member role at the site")
    site_id: str = Field(..., description="Site the session is bound to")
    exp: datetime = Field(..., description="Expiration time")
    iat: datetime = Field(default_factory=lambda: datetime.now(UTC), description="Issued at")
    name: str | None = None


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data (must include 'sub', 'role' and 'site_id')
        expires_delta: Custom expiration time (default from settings)

    Returns:
        str: Encoded JWT token
    """
    to_encode = data.copy()
    if isinstance(to_encode.get("role"), Role):
        to_encode["role"] = to_encode["role"].value

    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(minutes=settings.jwt.access_token_expire_minutes)

    to_encode.update({"exp": expire, "iat": datetime.now(UTC)})

    encoded_jwt = jwt.encode(
        to_encode,
        settings.jwt.secret_key.get_secret_value(),
        algorithm=settings.jwt.algorithm,
    )

    logger.debug(
        "access_token_created",
        sub=data.get("sub"),
        site_id=data.get("site_id"),
        expires_at=expire.isoformat(),
    )

    return encoded_jwt


def decode_token(token: str) -> TokenData | None:
    """
    Decode and validate a JWT token.

    Args:
        token: JWT token string

    Returns:
        TokenData: Decoded token data, or None if invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt.secret_key.get_secret_value(),
            algorithms=[settings.jwt.algorithm],
        )
        return TokenData(
            sub=payload["sub"],
            role=payload["role"],
            site_id=payload["site_id"],
            exp=datetime.fromtimestamp(payload["exp"], tz=UTC),
            iat=datetime.fromtimestamp(payload.get("iat", 0), tz=UTC),
            name=payload.get("name"),
        )

    except JWTError as e:
        logger.warning("token_decode_failed", error=str(e))
        return None
    except (KeyError, ValidationError) as e:
        logger.warning("token_claims_invalid", error=str(e))
        return None
