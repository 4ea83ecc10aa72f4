"""Uniform success and failure envelopes returned by every endpoint."""

from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, computed_field


class ApiResponse(BaseModel):
    """Success envelope.

    Attributes:
        status_code: HTTP status code of the response
        data: Operation payload
        message: Human-readable outcome
        success: Derived, True when status_code < 400
    """

    model_config = ConfigDict(populate_by_name=True)

    status_code: int = Field(alias="statusCode")
    data: Any = None
    message: str = "Success"

    @computed_field
    @property
    def success(self) -> bool:
        return self.status_code < 400

    def to_content(self) -> dict:
        """Serialize with camelCase keys for a JSONResponse body."""
        return self.model_dump(mode="json", by_alias=True)


class ApiErrorResponse(BaseModel):
    """Failure envelope.

    ``data`` is always null and ``success`` always false; ``errors`` carries
    one entry per problem (field errors for validation failures).
    """

    model_config = ConfigDict(populate_by_name=True)

    status_code: int = Field(alias="statusCode")
    message: str
    data: None = None
    success: bool = False
    errors: List[Any] = Field(default_factory=list)

    def to_content(self) -> dict:
        """Serialize with camelCase keys for a JSONResponse body."""
        return self.model_dump(mode="json", by_alias=True)
