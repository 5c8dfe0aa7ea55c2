"""
API request and response models for Tollgate REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are kept
separate from the dataclasses in auth/models.py, which own the internal domain
representation. Route handlers map between the two.

The access token payload uses camelCase on the wire (accessToken, expiresIn);
serialization aliases keep the Python side snake_case.
"""

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Principal


class AccessTokenResponse(BaseModel):
    """Response for POST /api/v1/login."""

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(serialization_alias="accessToken")
    expires_in: int = Field(serialization_alias="expiresIn", ge=0)


class UserMeResponse(BaseModel):
    """Response for GET /api/v0/users/me."""

    model_config = ConfigDict(frozen=True)

    login: str
    name: str
    email: str
    roles: list[str]

    @classmethod
    def from_principal(cls, principal: Principal) -> "UserMeResponse":
        return cls(
            login=principal.username,
            name=principal.name or principal.username,
            email=principal.email,
            roles=list(principal.roles),
        )


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: str | None = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    active_sessions: int
