"""Models package exports."""

from vidtube.models.auth import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RegistrationInput,
    TokenPair,
    UpdateAccountRequest,
)
from vidtube.models.response import ApiErrorResponse, ApiResponse
from vidtube.models.user import MediaAsset, StoredUser, User, VideoOwner, WatchedVideo

__all__ = [
    "ApiErrorResponse",
    "ApiResponse",
    "ChangePasswordRequest",
    "LoginRequest",
    "LoginResponse",
    "MediaAsset",
    "RefreshRequest",
    "RegistrationInput",
    "StoredUser",
    "TokenPair",
    "UpdateAccountRequest",
    "User",
    "VideoOwner",
    "WatchedVideo",
]
