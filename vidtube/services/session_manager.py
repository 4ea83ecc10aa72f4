"""Session lifecycle: registration, login, token rotation and profile updates."""

import asyncio
import hmac
import re
from pathlib import Path
from typing import Optional
from uuid import UUID

import structlog

from vidtube.errors import (
    AuthError,
    ConflictError,
    NotFoundError,
    UploadError,
    ValidationError,
)
from vidtube.models.auth import LoginResponse, RegistrationInput, TokenPair
from vidtube.models.user import MediaAsset, User, WatchedVideo
from vidtube.services.media_service import MediaService
from vidtube.services.password_hasher import PasswordHasher
from vidtube.services.token_service import InvalidTokenError, TokenService
from vidtube.services.user_service import UserService

logger = structlog.get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

# bcrypt ignores (or rejects) anything past this many bytes
MAX_PASSWORD_BYTES = 72


def normalize(value: str) -> str:
    """Trim and lowercase a handle or email."""
    return value.strip().lower()


def title_case(value: str) -> str:
    """Normalize a display name: "  jANE   doe " -> "Jane Doe"."""
    return " ".join(part[0].upper() + part[1:] for part in normalize(value).split())


def is_email_valid(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(normalize(email)))


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def _check_password_length(password: str, field: str) -> None:
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(
            f"{field} must be at most {MAX_PASSWORD_BYTES} bytes",
            errors=[f"{field}: too long"],
        )


async def _discard_staged(*paths: Optional[str]) -> None:
    """Remove staged upload files that were never handed to the media store."""
    for path in paths:
        if path:
            await asyncio.to_thread(Path(path).unlink, missing_ok=True)


class SessionManager:
    """Orchestrates account and session operations.

    Collaborators are injected: the credential store, the password hasher,
    the token issuer and the media store. The manager holds no per-user
    state; the stored refresh token is the only session record.
    """

    def __init__(
        self,
        users: UserService,
        hasher: PasswordHasher,
        tokens: TokenService,
        media: MediaService,
    ):
        self.users = users
        self.hasher = hasher
        self.tokens = tokens
        self.media = media

    async def register(self, data: RegistrationInput) -> User:
        """Create an account.

        Validates fields, checks handle/email availability, uploads the
        avatar (and cover image if given), hashes the password and inserts
        the record. Staged files are always removed.

        Returns:
            Public projection of the new user

        Raises:
            ValidationError: Missing/blank field, bad email, missing avatar
            ConflictError: Username or email already taken
            UploadError: Media upload failed
        """
        try:
            return await self._register(data)
        finally:
            await _discard_staged(data.avatar_path, data.cover_image_path)

    async def _register(self, data: RegistrationInput) -> User:
        required = {
            "fullName": data.full_name,
            "email": data.email,
            "username": data.username,
            "password": data.password,
        }
        missing = [f"{name} is required" for name, value in required.items() if _is_blank(value)]
        if missing:
            raise ValidationError("All fields are required", errors=missing)

        if not is_email_valid(data.email):
            raise ValidationError("Invalid email address", errors=["email: invalid format"])
        _check_password_length(data.password, "password")

        username = normalize(data.username)
        email = normalize(data.email)
        full_name = title_case(data.full_name)

        existing = await self.users.find_by_username_or_email(username=username, email=email)
        if existing is not None:
            logger.info("registration_conflict", username=username)
            raise ConflictError("User with this email or username already exists")

        if not data.avatar_path:
            raise ValidationError("Avatar file is required", errors=["avatar: missing file"])

        uploaded: list[MediaAsset] = []
        avatar = await self.media.upload(data.avatar_path)
        uploaded.append(avatar)

        try:
            cover_image = None
            if data.cover_image_path:
                cover_image = await self.media.upload(data.cover_image_path)
                uploaded.append(cover_image)

            password_hash = await asyncio.to_thread(self.hasher.hash, data.password)

            user = await self.users.create_user(
                username=username,
                email=email,
                full_name=full_name,
                password_hash=password_hash,
                avatar=avatar,
                cover_image=cover_image,
            )
        except Exception:
            for asset in uploaded:
                await self._delete_media_quietly(asset.public_id)
            raise

        logger.info("user_registered", user_id=str(user.id), username=username)
        return user

    async def login(
        self,
        password: str,
        email: Optional[str] = None,
        username: Optional[str] = None,
    ) -> LoginResponse:
        """Authenticate by email or username and start a new session.

        Any earlier refresh token for the account stops being valid.

        Raises:
            ValidationError: Password or both identifiers missing
            NotFoundError: No matching user
            AuthError: Wrong password
        """
        if _is_blank(password) or (_is_blank(email) and _is_blank(username)):
            raise ValidationError(
                "Username or email and password are required",
                errors=["username or email is required", "password is required"],
            )

        stored = await self.users.find_by_username_or_email(
            username=None if _is_blank(username) else normalize(username),
            email=None if _is_blank(email) else normalize(email),
        )
        if stored is None:
            raise NotFoundError("User does not exist")

        valid = await asyncio.to_thread(self.hasher.verify, password, stored.password_hash)
        if not valid:
            logger.info("login_rejected", user_id=str(stored.id))
            raise AuthError("Invalid user credentials")

        user = stored.to_public()
        pair = self.tokens.mint_pair(user)
        if not await self.users.set_refresh_token(user.id, pair.refresh_token):
            raise NotFoundError("User does not exist")

        logger.info("user_logged_in", user_id=str(user.id), username=user.username)
        return LoginResponse(
            user=user,
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
        )

    async def logout(self, user_id: UUID) -> None:
        """Clear the stored refresh token.

        Raises:
            NotFoundError: The user vanished after the guard resolved it
        """
        if not await self.users.set_refresh_token(user_id, None):
            raise NotFoundError("User does not exist")
        logger.info("user_logged_out", user_id=str(user_id))

    async def refresh(self, refresh_token: Optional[str]) -> TokenPair:
        """Exchange the current refresh token for a new pair (rotation).

        The presented token must verify against the refresh secret and equal
        the value stored on the user record. The store write only succeeds
        while that is still true, so a token is accepted at most once.

        Raises:
            AuthError: Token missing, invalid, expired, mismatched or reused
        """
        if _is_blank(refresh_token):
            raise AuthError("Unauthorized request")

        try:
            payload = self.tokens.verify_refresh(refresh_token)
        except InvalidTokenError as e:
            logger.info("refresh_token_rejected", reason=str(e))
            raise AuthError("Invalid refresh token")

        user_id = UUID(payload["sub"])
        stored = await self.users.get_stored_by_id(user_id)
        if stored is None:
            logger.info("refresh_token_rejected", reason="unknown_user")
            raise AuthError("Invalid refresh token")

        if stored.refresh_token is None or not hmac.compare_digest(
            stored.refresh_token, refresh_token
        ):
            logger.warning("refresh_token_mismatch", user_id=str(user_id))
            raise AuthError("Refresh token is expired or used")

        pair = self.tokens.mint_pair(stored.to_public())
        rotated = await self.users.replace_refresh_token(
            user_id, expected=refresh_token, new_token=pair.refresh_token
        )
        if not rotated:
            logger.warning("refresh_token_race_lost", user_id=str(user_id))
            raise AuthError("Refresh token is expired or used")

        logger.info("refresh_token_rotated", user_id=str(user_id))
        return pair

    async def change_password(
        self, user_id: UUID, old_password: str, new_password: str
    ) -> None:
        """Replace the password after checking the current one.

        Only the password hash is written.

        Raises:
            ValidationError: Either password missing
            NotFoundError: User vanished
            AuthError: Old password wrong
        """
        missing = []
        if _is_blank(old_password):
            missing.append("oldPassword is required")
        if _is_blank(new_password):
            missing.append("newPassword is required")
        if missing:
            raise ValidationError("Old and new password are required", errors=missing)
        _check_password_length(new_password, "newPassword")

        stored = await self.users.get_stored_by_id(user_id)
        if stored is None:
            raise NotFoundError("User does not exist")

        valid = await asyncio.to_thread(self.hasher.verify, old_password, stored.password_hash)
        if not valid:
            raise AuthError("Invalid old password")

        password_hash = await asyncio.to_thread(self.hasher.hash, new_password)
        if not await self.users.set_password_hash(user_id, password_hash):
            raise NotFoundError("User does not exist")

    async def update_account(self, user_id: UUID, full_name: str, email: str) -> User:
        """Update display name and email.

        Raises:
            ValidationError: Field missing or bad email
            ConflictError: Email taken by another account
            NotFoundError: User vanished
        """
        missing = []
        if _is_blank(full_name):
            missing.append("fullName is required")
        if _is_blank(email):
            missing.append("email is required")
        if missing:
            raise ValidationError("All fields are required", errors=missing)
        if not is_email_valid(email):
            raise ValidationError("Invalid email address", errors=["email: invalid format"])

        user = await self.users.update_account(
            user_id, full_name=title_case(full_name), email=normalize(email)
        )
        if user is None:
            raise NotFoundError("User does not exist")
        return user

    async def update_avatar(self, user_id: UUID, local_path: Optional[str]) -> User:
        """Upload a new avatar, then delete the previous one."""
        return await self._replace_media(user_id, local_path, "avatar")

    async def update_cover_image(self, user_id: UUID, local_path: Optional[str]) -> User:
        """Upload a new cover image, then delete the previous one."""
        return await self._replace_media(user_id, local_path, "coverImage")

    async def _replace_media(
        self, user_id: UUID, local_path: Optional[str], field: str
    ) -> User:
        """Upload, persist the new reference, and only then drop the old asset.

        Raises:
            ValidationError: No file was staged
            NotFoundError: User vanished
            UploadError: Upload failed (the record is left untouched)
        """
        if not local_path:
            raise ValidationError(f"{field} file is missing", errors=[f"{field}: missing file"])

        stored = await self.users.get_stored_by_id(user_id)
        if stored is None:
            await _discard_staged(local_path)
            raise NotFoundError("User does not exist")

        if field == "avatar":
            previous = stored.avatar_public_id
            persist = self.users.set_avatar
        else:
            previous = stored.cover_image_public_id
            persist = self.users.set_cover_image

        asset = await self.media.upload(local_path)
        try:
            user = await persist(user_id, asset)
        except Exception:
            await self._delete_media_quietly(asset.public_id)
            raise

        if user is None:
            await self._delete_media_quietly(asset.public_id)
            raise NotFoundError("User does not exist")

        if previous and previous != asset.public_id:
            await self._delete_media_quietly(previous)

        logger.info("user_media_updated", user_id=str(user_id), field=field)
        return user

    async def get_watch_history(self, user_id: UUID) -> list[WatchedVideo]:
        return await self.users.get_watch_history(user_id)

    async def _delete_media_quietly(self, public_id: str) -> None:
        """Best-effort cleanup of a media asset; failures are logged only."""
        try:
            await self.media.delete(public_id)
        except UploadError as e:
            logger.warning("media_cleanup_failed", public_id=public_id, error=e.message)
