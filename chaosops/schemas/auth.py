"""Admin login schemas."""

from chaosops.schemas.base import CamelModel


class LoginRequest(CamelModel):
    username: str
    password: str


class LoginResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    organisation_id: str
    role: str
