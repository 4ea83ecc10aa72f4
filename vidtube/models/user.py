"""User and video models."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that serializes to camelCase and accepts either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class User(CamelModel):
    """Public projection of a registered user.

    Never carries the password hash or the refresh token.
    """

    id: UUID
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: Optional[str] = None
    watch_history: List[UUID] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class StoredUser(User):
    """Full user record as persisted, for use inside the service layer only."""

    password_hash: str
    refresh_token: Optional[str] = None
    avatar_public_id: Optional[str] = None
    cover_image_public_id: Optional[str] = None

    def to_public(self) -> User:
        """Drop credential and media-bookkeeping fields."""
        return User.model_validate(
            self.model_dump(
                exclude={
                    "password_hash",
                    "refresh_token",
                    "avatar_public_id",
                    "cover_image_public_id",
                }
            )
        )


class VideoOwner(CamelModel):
    """Owner summary embedded in watch-history entries."""

    id: UUID
    username: str
    full_name: str
    avatar: str


class WatchedVideo(CamelModel):
    """A watch-history entry resolved against the videos table."""

    id: UUID
    video_file: str
    thumbnail: str
    title: str
    description: str
    duration: float
    views: int = 0
    owner: Optional[VideoOwner] = None
    created_at: datetime


class MediaAsset(BaseModel):
    """Reference to a file held by the media store."""

    url: str
    public_id: str
