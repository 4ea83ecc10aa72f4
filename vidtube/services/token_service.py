"""JWT access/refresh token minting and verification."""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

import jwt
import structlog

from vidtube.config import Settings
from vidtube.models.auth import TokenPair
from vidtube.models.user import User

logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class InvalidTokenError(Exception):
    """Token is malformed, badly signed, expired, or of the wrong type."""


class TokenService:
    """Creates and checks signed, time-bounded access and refresh tokens.

    Access and refresh tokens use distinct secrets and lifetimes, both taken
    from the settings object. Access tokens carry the user's public claims;
    refresh tokens carry only the user id plus a random ``jti`` so that every
    minted refresh token is unique.
    """

    def __init__(self, settings: Settings):
        self.access_secret = settings.access_token_secret
        self.refresh_secret = settings.refresh_token_secret
        self.access_ttl = timedelta(minutes=settings.access_token_expire_minutes)
        self.refresh_ttl = timedelta(days=settings.refresh_token_expire_days)

    def mint_access(self, user: User, now: Optional[datetime] = None) -> str:
        """Create a signed JWT access token.

        Args:
            user: User whose public claims go into the payload
            now: Issue time, defaults to the current UTC time

        Returns:
            Encoded JWT string
        """
        now = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "username": user.username,
            "full_name": user.full_name,
            "type": ACCESS_TOKEN_TYPE,
            "iat": now,
            "exp": now + self.access_ttl,
        }
        token = jwt.encode(payload, self.access_secret, algorithm=JWT_ALGORITHM)
        logger.debug(
            "access_token_created",
            user_id=str(user.id),
            expires_seconds=int(self.access_ttl.total_seconds()),
        )
        return token

    def mint_refresh(self, user_id: UUID, now: Optional[datetime] = None) -> str:
        """Create a signed JWT refresh token carrying only the user id."""
        now = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "type": REFRESH_TOKEN_TYPE,
            "jti": secrets.token_urlsafe(16),
            "iat": now,
            "exp": now + self.refresh_ttl,
        }
        token = jwt.encode(payload, self.refresh_secret, algorithm=JWT_ALGORITHM)
        logger.debug(
            "refresh_token_created",
            user_id=str(user_id),
            expires_days=self.refresh_ttl.days,
        )
        return token

    def mint_pair(self, user: User) -> TokenPair:
        return TokenPair(
            access_token=self.mint_access(user),
            refresh_token=self.mint_refresh(user.id),
        )

    def verify(self, token: str, secret: str, expected_type: str) -> dict:
        """Decode and validate a JWT.

        Args:
            token: Encoded JWT string
            secret: Secret the token must be signed with
            expected_type: Required value of the ``type`` claim

        Returns:
            Decoded payload dict

        Raises:
            InvalidTokenError: If the token is invalid, expired, malformed,
                or not of the expected type
        """
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidTokenError(f"{expected_type} token has expired")
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(f"Invalid {expected_type} token: {e}")

        if payload.get("type") != expected_type:
            raise InvalidTokenError(f"Token is not a {expected_type} token")

        try:
            UUID(payload["sub"])
        except (TypeError, ValueError):
            raise InvalidTokenError(f"Invalid {expected_type} token subject")

        return payload

    def verify_access(self, token: str) -> dict:
        return self.verify(token, self.access_secret, ACCESS_TOKEN_TYPE)

    def verify_refresh(self, token: str) -> dict:
        return self.verify(token, self.refresh_secret, REFRESH_TOKEN_TYPE)
