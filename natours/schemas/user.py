"""Pydantic schemas for user and authentication endpoints."""

from typing import Annotated

from pydantic import AfterValidator, BaseModel, BeforeValidator, EmailStr, Field, model_validator

from natours.models.user import Role
from natours.schemas.common import RequestModel

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")
    return value


def _strip(value):
    return value.strip() if isinstance(value, str) else value


Password = Annotated[str, Field(min_length=8), AfterValidator(_check_password_bytes)]
Name = Annotated[str, BeforeValidator(_strip), Field(min_length=3, max_length=40)]


class _NewPassword(RequestModel):
    password: Password
    password_confirm: str

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.password != self.password_confirm:
            raise ValueError("Passwords do not match!")
        return self


class SignupRequest(_NewPassword):
    name: Name
    email: EmailStr


class LoginRequest(RequestModel):
    email: str | None = None
    password: str | None = None


class ForgotPasswordRequest(RequestModel):
    email: EmailStr


class ResetPasswordRequest(_NewPassword):
    pass


class UpdatePasswordRequest(_NewPassword):
    password_current: str


class UpdateMeRequest(RequestModel):
    name: Name | None = None
    email: EmailStr | None = None
    # Accepted only so the route can reject password changes explicitly
    password: str | None = None
    password_confirm: str | None = None


class UserCreateRequest(SignupRequest):
    role: Role = Role.USER
    photo: str | None = None


class UserUpdateRequest(RequestModel):
    name: Name | None = None
    email: EmailStr | None = None
    photo: str | None = None
    role: Role | None = None


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    photo: str | None
    role: str

    model_config = {"from_attributes": True}


class UserData(BaseModel):
    user: UserResponse


class UserEnvelope(BaseModel):
    status: str = "success"
    data: UserData


class AuthResponse(BaseModel):
    status: str = "success"
    token: str
    data: UserData
