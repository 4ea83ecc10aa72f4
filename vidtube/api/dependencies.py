"""FastAPI dependencies for services and authentication."""

from uuid import UUID

import structlog
from fastapi import Depends, Request

from vidtube.config import Settings
from vidtube.errors import AuthError
from vidtube.models.user import User
from vidtube.services.session_manager import SessionManager
from vidtube.services.token_service import InvalidTokenError, TokenService
from vidtube.services.user_service import UserService

logger = structlog.get_logger(__name__)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


def extract_access_token(request: Request) -> str | None:
    """Read the access token from its cookie, else from a Bearer header."""
    token = request.cookies.get(ACCESS_COOKIE)
    if token:
        return token

    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


async def get_current_user(
    request: Request,
    tokens: TokenService = Depends(get_token_service),
    users: UserService = Depends(get_user_service),
) -> User:
    """Resolve the request's access token to a stored user.

    Every call re-verifies the token and re-reads the user; nothing is
    cached between requests. The resolved user is also placed on
    ``request.state.user``.

    Raises:
        AuthError: Token missing, invalid, expired, or user not found
    """
    token = extract_access_token(request)
    if token is None:
        raise AuthError("Unauthorized request")

    try:
        payload = tokens.verify_access(token)
    except InvalidTokenError as e:
        logger.info("access_token_rejected", reason=str(e))
        raise AuthError("Invalid access token")

    user = await users.get_by_id(UUID(payload["sub"]))
    if user is None:
        logger.info("access_token_rejected", reason="unknown_user")
        raise AuthError("Invalid access token")

    request.state.user = user
    structlog.contextvars.bind_contextvars(user_id=str(user.id))
    return user
