"""Unit tests for Pydantic models, envelopes and the error taxonomy."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from vidtube.errors import AuthError, ConflictError, InternalError, ValidationError
from vidtube.models.auth import LoginRequest, RefreshRequest
from vidtube.models.response import ApiErrorResponse, ApiResponse
from vidtube.models.user import StoredUser


def _stored_user() -> StoredUser:
    now = datetime.now(timezone.utc)
    return StoredUser(
        id=uuid4(),
        username="alice",
        email="alice@example.com",
        full_name="Alice Liddell",
        avatar="https://media.test/a.png",
        avatar_public_id="a",
        password_hash="$2b$10$hash",
        refresh_token="rt",
        created_at=now,
        updated_at=now,
    )


class TestEnvelopes:
    def test_success_envelope(self):
        body = ApiResponse(status_code=201, data={"id": 1}, message="Created").to_content()
        assert body == {"statusCode": 201, "data": {"id": 1}, "message": "Created", "success": True}

    def test_success_derived_from_status(self):
        assert ApiResponse(status_code=404).to_content()["success"] is False

    def test_failure_envelope(self):
        body = ApiErrorResponse(
            status_code=409, message="Taken", errors=["email taken"]
        ).to_content()
        assert body == {
            "statusCode": 409,
            "message": "Taken",
            "data": None,
            "success": False,
            "errors": ["email taken"],
        }


class TestErrors:
    @pytest.mark.parametrize(
        "error_cls,status",
        [(ValidationError, 400), (AuthError, 401), (ConflictError, 409), (InternalError, 500)],
    )
    def test_status_codes(self, error_cls, status):
        assert error_cls().status_code == status

    def test_errors_default_to_message(self):
        error = AuthError("Invalid old password")
        assert error.errors == ["Invalid old password"]
        assert str(error) == "Invalid old password"

    def test_explicit_errors_kept(self):
        error = ValidationError("All fields are required", errors=["email is required"])
        assert error.errors == ["email is required"]


class TestUserProjection:
    def test_public_projection_camel_case(self):
        dumped = _stored_user().to_public().model_dump(mode="json", by_alias=True)

        assert dumped["fullName"] == "Alice Liddell"
        assert dumped["coverImage"] is None
        assert dumped["watchHistory"] == []
        for key in ("passwordHash", "refreshToken", "avatarPublicId", "password"):
            assert key not in dumped

    def test_request_models_accept_camel_case(self):
        assert RefreshRequest.model_validate({"refreshToken": "x"}).refresh_token == "x"
        login = LoginRequest.model_validate({"email": "a@b.co", "password": "p"})
        assert login.username is None


class TestSettings:
    def test_cors_origins_list(self, test_settings):
        settings = test_settings.model_copy(
            update={"cors_origin": "https://a.test, https://b.test,"}
        )
        assert settings.cors_origins_list == ["https://a.test", "https://b.test"]

    def test_defaults(self):
        from vidtube.config import Settings

        settings = Settings(_env_file=None, access_token_secret="a", refresh_token_secret="b")

        assert settings.access_token_expire_minutes == 15
        assert settings.refresh_token_expire_days == 10
        assert settings.bcrypt_rounds == 10
        assert settings.upload_temp_dir == "public/temp"
