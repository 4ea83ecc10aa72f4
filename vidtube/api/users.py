"""User account and session API endpoints."""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from vidtube.api.dependencies import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    get_app_settings,
    get_current_user,
    get_session_manager,
)
from vidtube.api.uploads import stage_upload
from vidtube.config import Settings
from vidtube.models.auth import (
    ChangePasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegistrationInput,
    TokenPair,
    UpdateAccountRequest,
)
from vidtube.models.response import ApiResponse
from vidtube.models.user import User
from vidtube.services.session_manager import SessionManager

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["Users"])

# Applied identically on set and clear so a clear always matches an earlier set
COOKIE_OPTIONS = {
    "httponly": True,
    "secure": True,
    "samesite": "strict",
    "path": "/",
}


def _payload(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True)
    if isinstance(data, list):
        return [_payload(item) for item in data]
    return data


def _envelope(status_code: int, data: Any, message: str) -> JSONResponse:
    body = ApiResponse(status_code=status_code, data=_payload(data), message=message)
    return JSONResponse(status_code=status_code, content=body.to_content())


def _set_session_cookies(response: JSONResponse, tokens: TokenPair) -> None:
    response.set_cookie(ACCESS_COOKIE, tokens.access_token, **COOKIE_OPTIONS)
    response.set_cookie(REFRESH_COOKIE, tokens.refresh_token, **COOKIE_OPTIONS)


def _clear_session_cookies(response: JSONResponse) -> None:
    response.delete_cookie(ACCESS_COOKIE, **COOKIE_OPTIONS)
    response.delete_cookie(REFRESH_COOKIE, **COOKIE_OPTIONS)


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    full_name: str = Form("", alias="fullName"),
    email: str = Form(""),
    username: str = Form(""),
    password: str = Form(""),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    settings: Settings = Depends(get_app_settings),
    manager: SessionManager = Depends(get_session_manager),
) -> JSONResponse:
    """Register a new account.

    Multipart form with ``fullName``, ``email``, ``username``, ``password``,
    a required ``avatar`` file and an optional ``coverImage`` file.
    """
    data = RegistrationInput(
        full_name=full_name,
        email=email,
        username=username,
        password=password,
        avatar_path=await stage_upload(avatar, settings.upload_temp_dir),
        cover_image_path=await stage_upload(cover_image, settings.upload_temp_dir),
    )
    user = await manager.register(data)
    return _envelope(status.HTTP_201_CREATED, user, "User registered successfully")


@router.post("/login")
async def login(
    request: LoginRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> JSONResponse:
    """Login with email or username plus password.

    Sets ``accessToken`` and ``refreshToken`` cookies and also returns both
    tokens in the body for clients that cannot use cookies.
    """
    result = await manager.login(
        password=request.password,
        email=request.email,
        username=request.username,
    )
    response = _envelope(status.HTTP_200_OK, result, "User logged in successfully")
    _set_session_cookies(
        response,
        TokenPair(access_token=result.access_token, refresh_token=result.refresh_token),
    )
    return response


@router.post("/logout")
async def logout(
    current_user: User = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
) -> JSONResponse:
    await manager.logout(current_user.id)
    response = _envelope(status.HTTP_200_OK, {}, "User logged out")
    _clear_session_cookies(response)
    return response


@router.post("/refresh-token")
async def refresh_token(
    request: Request,
    body: Optional[RefreshRequest] = None,
    manager: SessionManager = Depends(get_session_manager),
) -> JSONResponse:
    """Rotate the session: exchange the current refresh token for a new pair.

    The token is read from the ``refreshToken`` cookie, falling back to the
    JSON body.
    """
    incoming = request.cookies.get(REFRESH_COOKIE) or (body.refresh_token if body else None)
    tokens = await manager.refresh(incoming)
    response = _envelope(status.HTTP_200_OK, tokens, "Access token refreshed")
    _set_session_cookies(response, tokens)
    return response


@router.post("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
) -> JSONResponse:
    await manager.change_password(
        current_user.id, request.old_password, request.new_password
    )
    return _envelope(status.HTTP_200_OK, {}, "Password changed successfully")


@router.get("/current-user")
async def current_user(current_user: User = Depends(get_current_user)) -> JSONResponse:
    return _envelope(status.HTTP_200_OK, current_user, "Current user fetched successfully")


@router.patch("/update-account")
async def update_account(
    request: UpdateAccountRequest,
    current_user: User = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
) -> JSONResponse:
    user = await manager.update_account(
        current_user.id, full_name=request.full_name, email=request.email
    )
    return _envelope(status.HTTP_200_OK, user, "Account details updated successfully")


@router.patch("/avatar")
async def update_avatar(
    avatar: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
    manager: SessionManager = Depends(get_session_manager),
) -> JSONResponse:
    local_path = await stage_upload(avatar, settings.upload_temp_dir)
    user = await manager.update_avatar(current_user.id, local_path)
    return _envelope(status.HTTP_200_OK, user, "Avatar updated successfully")


@router.patch("/cover-image")
async def update_cover_image(
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
    manager: SessionManager = Depends(get_session_manager),
) -> JSONResponse:
    local_path = await stage_upload(cover_image, settings.upload_temp_dir)
    user = await manager.update_cover_image(current_user.id, local_path)
    return _envelope(status.HTTP_200_OK, user, "Cover image updated successfully")


@router.get("/history")
async def watch_history(
    current_user: User = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
) -> JSONResponse:
    history = await manager.get_watch_history(current_user.id)
    return _envelope(status.HTTP_200_OK, history, "Watch history fetched successfully")
