"""Services package exports."""

from vidtube.services.logging_service import configure_logging, get_logger
from vidtube.services.media_service import MediaService
from vidtube.services.password_hasher import PasswordHasher
from vidtube.services.session_manager import SessionManager
from vidtube.services.token_service import InvalidTokenError, TokenService
from vidtube.services.user_service import UserService

__all__ = [
    "InvalidTokenError",
    "MediaService",
    "PasswordHasher",
    "SessionManager",
    "TokenService",
    "UserService",
    "configure_logging",
    "get_logger",
]
