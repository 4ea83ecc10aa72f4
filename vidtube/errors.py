"""Error taxonomy shared by services, the auth guard and the HTTP layer.

Every failure that reaches a client is one of these. The FastAPI exception
handlers in ``vidtube.main`` render them into the failure envelope.
"""

from typing import Any, List, Optional


class VidTubeError(Exception):
    """Base class for all errors surfaced through the failure envelope."""

    status_code: int = 500
    default_message: str = "Something went wrong"

    def __init__(
        self,
        message: Optional[str] = None,
        errors: Optional[List[Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message or self.default_message
        self.errors = list(errors) if errors else [self.message]
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(VidTubeError):
    """Malformed or missing input the caller can correct."""

    status_code = 400
    default_message = "Invalid request"


class AuthError(VidTubeError):
    """Bad credentials, bad/expired/mismatched token, or missing credential."""

    status_code = 401
    default_message = "Unauthorized request"


class NotFoundError(VidTubeError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(VidTubeError):
    """A uniqueness constraint (username, email) was violated."""

    status_code = 409
    default_message = "Resource already exists"


class UploadError(VidTubeError):
    """The external media store rejected or failed an operation."""

    status_code = 500
    default_message = "Media upload failed"


class InternalError(VidTubeError):
    status_code = 500
    default_message = "Internal server error"
