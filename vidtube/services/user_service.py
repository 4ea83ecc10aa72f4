"""Credential store: user records in PostgreSQL."""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

import asyncpg
import structlog

from vidtube.database import get_pool
from vidtube.errors import ConflictError
from vidtube.models.user import MediaAsset, StoredUser, User, VideoOwner, WatchedVideo

logger = structlog.get_logger(__name__)

PUBLIC_COLUMNS = """
    id, username, email, full_name, avatar_url, cover_image_url,
    watch_history, created_at, updated_at
"""

STORED_COLUMNS = PUBLIC_COLUMNS + """,
    password_hash, refresh_token, avatar_public_id, cover_image_public_id
"""


def _row_to_user(row: Any) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        full_name=row["full_name"],
        avatar=row["avatar_url"],
        cover_image=row["cover_image_url"],
        watch_history=list(row["watch_history"] or []),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_stored_user(row: Any) -> StoredUser:
    return StoredUser(
        **_row_to_user(row).model_dump(),
        password_hash=row["password_hash"],
        refresh_token=row["refresh_token"],
        avatar_public_id=row["avatar_public_id"],
        cover_image_public_id=row["cover_image_public_id"],
    )


def _conflict_from(exc: asyncpg.UniqueViolationError) -> ConflictError:
    """Translate a unique-index violation into a ConflictError."""
    constraint = getattr(exc, "constraint_name", None) or ""
    if "email" in constraint:
        field = "email"
    elif "username" in constraint:
        field = "username"
    else:
        field = "username or email"
    return ConflictError(f"User with this {field} already exists")


class UserService:
    """Reads and per-field writes against the ``users`` table.

    Uniqueness of username and email is enforced by unique indexes, so two
    concurrent writers racing for the same handle are resolved by the store.
    No method here hashes passwords; callers pass a finished hash.
    """

    async def create_user(
        self,
        username: str,
        email: str,
        full_name: str,
        password_hash: str,
        avatar: MediaAsset,
        cover_image: Optional[MediaAsset] = None,
    ) -> User:
        """Insert a new user record.

        Args:
            username: Normalized unique handle
            email: Normalized unique email
            full_name: Normalized display name
            password_hash: Bcrypt hash of the password
            avatar: Uploaded avatar reference
            cover_image: Uploaded cover image reference, if any

        Returns:
            Public projection of the created user

        Raises:
            ConflictError: If the username or email is already taken
        """
        user_id = uuid4()
        now = datetime.now(timezone.utc)

        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO users (
                        id, username, email, full_name, password_hash,
                        avatar_url, avatar_public_id,
                        cover_image_url, cover_image_public_id,
                        created_at, updated_at
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                    RETURNING {PUBLIC_COLUMNS}
                    """,
                    user_id,
                    username,
                    email,
                    full_name,
                    password_hash,
                    avatar.url,
                    avatar.public_id,
                    cover_image.url if cover_image else None,
                    cover_image.public_id if cover_image else None,
                    now,
                    now,
                )
        except asyncpg.UniqueViolationError as e:
            logger.warning("user_create_conflict", username=username)
            raise _conflict_from(e) from e

        logger.info("user_created", user_id=str(user_id), username=username)

        return _row_to_user(row)

    async def find_by_username_or_email(
        self,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Optional[StoredUser]:
        """Find the first user matching either the username or the email.

        Both values must already be normalized (trimmed, lowercased).

        Returns:
            StoredUser or None if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {STORED_COLUMNS}
                FROM users
                WHERE username = $1 OR email = $2
                LIMIT 1
                """,
                username,
                email,
            )

        if row is None:
            return None

        return _row_to_stored_user(row)

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        """Get a user's public projection by UUID.

        Args:
            user_id: User UUID

        Returns:
            User model or None if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {PUBLIC_COLUMNS} FROM users WHERE id = $1",
                user_id,
            )

        if row is None:
            return None

        return _row_to_user(row)

    async def get_stored_by_id(self, user_id: UUID) -> Optional[StoredUser]:
        """Get the full record, including password hash and refresh token."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {STORED_COLUMNS} FROM users WHERE id = $1",
                user_id,
            )

        if row is None:
            return None

        return _row_to_stored_user(row)

    async def set_refresh_token(self, user_id: UUID, token: Optional[str]) -> bool:
        """Overwrite the stored refresh token (None clears it).

        Returns:
            True if a user row was updated, False if the user does not exist
        """
        now = datetime.now(timezone.utc)
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE users
                SET refresh_token = $1, updated_at = $2
                WHERE id = $3
                """,
                token,
                now,
                user_id,
            )

        return result == "UPDATE 1"

    async def replace_refresh_token(
        self, user_id: UUID, expected: str, new_token: str
    ) -> bool:
        """Rotate the refresh token only if the stored one equals ``expected``.

        Returns:
            True if rotated; False if the stored token had already changed
        """
        now = datetime.now(timezone.utc)
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE users
                SET refresh_token = $1, updated_at = $2
                WHERE id = $3 AND refresh_token = $4
                """,
                new_token,
                now,
                user_id,
                expected,
            )

        return result == "UPDATE 1"

    async def set_password_hash(self, user_id: UUID, password_hash: str) -> bool:
        """Write a new password hash, touching no other field."""
        now = datetime.now(timezone.utc)
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE users
                SET password_hash = $1, updated_at = $2
                WHERE id = $3
                """,
                password_hash,
                now,
                user_id,
            )

        updated = result == "UPDATE 1"
        if updated:
            logger.info("user_password_changed", user_id=str(user_id))
        return updated

    async def update_account(
        self, user_id: UUID, full_name: str, email: str
    ) -> Optional[User]:
        """Update display name and email.

        Raises:
            ConflictError: If the email belongs to another user
        """
        return await self._update_fields(
            user_id, {"full_name": full_name, "email": email}
        )

    async def set_avatar(self, user_id: UUID, avatar: MediaAsset) -> Optional[User]:
        return await self._update_fields(
            user_id,
            {"avatar_url": avatar.url, "avatar_public_id": avatar.public_id},
        )

    async def set_cover_image(
        self, user_id: UUID, cover_image: MediaAsset
    ) -> Optional[User]:
        return await self._update_fields(
            user_id,
            {
                "cover_image_url": cover_image.url,
                "cover_image_public_id": cover_image.public_id,
            },
        )

    async def _update_fields(
        self, user_id: UUID, fields: dict[str, Any]
    ) -> Optional[User]:
        """Update the given columns and return the public projection.

        Column names come from this module only, never from request data.

        Returns:
            Updated User model, or None if user not found
        """
        set_clauses = []
        params: list[Any] = []
        param_idx = 1

        for column, value in fields.items():
            set_clauses.append(f"{column} = ${param_idx}")
            params.append(value)
            param_idx += 1

        # Always update updated_at
        set_clauses.append(f"updated_at = ${param_idx}")
        params.append(datetime.now(timezone.utc))
        param_idx += 1

        params.append(user_id)

        query = f"""
            UPDATE users
            SET {', '.join(set_clauses)}
            WHERE id = ${param_idx}
            RETURNING {PUBLIC_COLUMNS}
        """

        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(query, *params)
        except asyncpg.UniqueViolationError as e:
            logger.warning("user_update_conflict", user_id=str(user_id))
            raise _conflict_from(e) from e

        if row is None:
            return None

        logger.info(
            "user_updated",
            user_id=str(user_id),
            fields_updated=list(fields.keys()),
        )

        return _row_to_user(row)

    async def get_watch_history(self, user_id: UUID) -> list[WatchedVideo]:
        """Resolve the user's watch history, oldest entry first.

        Entries whose video no longer exists are skipped.
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT v.id, v.video_file, v.thumbnail, v.title, v.description,
                       v.duration, v.views, v.created_at,
                       o.id AS owner_id, o.username AS owner_username,
                       o.full_name AS owner_full_name, o.avatar_url AS owner_avatar
                FROM users u
                CROSS JOIN LATERAL unnest(u.watch_history)
                    WITH ORDINALITY AS h(video_id, position)
                JOIN videos v ON v.id = h.video_id
                LEFT JOIN users o ON o.id = v.owner_id
                WHERE u.id = $1
                ORDER BY h.position
                """,
                user_id,
            )

        return [
            WatchedVideo(
                id=row["id"],
                video_file=row["video_file"],
                thumbnail=row["thumbnail"],
                title=row["title"],
                description=row["description"],
                duration=row["duration"],
                views=row["views"],
                created_at=row["created_at"],
                owner=(
                    VideoOwner(
                        id=row["owner_id"],
                        username=row["owner_username"],
                        full_name=row["owner_full_name"],
                        avatar=row["owner_avatar"],
                    )
                    if row["owner_id"] is not None
                    else None
                ),
            )
            for row in rows
        ]
