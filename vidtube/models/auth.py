"""Auth request and response models.

Request models accept blank values. Field rules live in the session
manager, which raises ``ValidationError``.
"""

from typing import Optional

from pydantic import Field

from vidtube.models.user import CamelModel, User


class RegistrationInput(CamelModel):
    """Registration fields, plus the staged local paths of uploaded media.

    Attributes:
        full_name: Display name (title-cased before storage)
        email: Email address (trimmed and lowercased before storage)
        username: Handle (trimmed and lowercased before storage)
        password: Plain-text password (hashed before storage)
        avatar_path: Local path of the staged avatar upload, required
        cover_image_path: Local path of the staged cover upload, optional
    """

    full_name: str = ""
    email: str = ""
    username: str = ""
    password: str = ""
    avatar_path: Optional[str] = None
    cover_image_path: Optional[str] = None


class LoginRequest(CamelModel):
    """Login credentials. Either email or username identifies the account."""

    email: Optional[str] = None
    username: Optional[str] = None
    password: str = ""


class RefreshRequest(CamelModel):
    """Body form of a refresh request; the cookie takes precedence."""

    refresh_token: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    old_password: str = ""
    new_password: str = ""


class UpdateAccountRequest(CamelModel):
    full_name: str = ""
    email: str = ""


class TokenPair(CamelModel):
    """Freshly minted access and refresh tokens."""

    access_token: str
    refresh_token: str


class LoginResponse(CamelModel):
    """Payload of a successful login.

    Attributes:
        user: Public projection of the authenticated user
        access_token: Short-lived JWT for API access
        refresh_token: Long-lived JWT, the only one accepted for this account
    """

    user: User
    access_token: str
    refresh_token: str = Field(..., description="Current refresh token")
