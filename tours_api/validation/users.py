"""
Pydantic schemas for user and authentication request validation.
"""

from typing import Annotated, Any, Literal, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)

from tours_api.validation.tours import non_empty, object_id

Role = Literal["user", "guide", "lead-guide", "admin"]

PASSWORD_FIELDS = ("currentPassword", "password", "confirmPassword")

Password = Annotated[str, Field(min_length=8, max_length=128)]


def _matches_password(value: str, info: ValidationInfo) -> str:
    password = info.data.get("password")
    if password is not None and value != password:
        raise ValueError("Passwords are not the same")
    return value


ConfirmPassword = Annotated[str, AfterValidator(_matches_password)]


def _reject_password_fields(data: Any, message: str) -> Any:
    if isinstance(data, dict) and any(field in data for field in PASSWORD_FIELDS):
        raise ValueError(message)
    return data


# --- Params ---

class UserIdParams(BaseModel):
    id: Annotated[str, object_id("userId")]


class ResetTokenParams(BaseModel):
    token: Annotated[str, Field(min_length=1)]


# --- Bodies ---

class SignupBody(BaseModel):
    """Request body for POST /users/signup. Role is always "user"."""
    model_config = ConfigDict(extra="forbid")

    name: Annotated[str, non_empty("Please add a name")]
    email: EmailStr
    photo: Optional[str] = None
    password: Password
    confirmPassword: ConfirmPassword

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()


class UserCreateBody(SignupBody):
    """Request body for POST /users."""
    role: Role = "user"


class UserPatchBody(BaseModel):
    """Request body for PATCH /users/{id}."""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: Optional[Annotated[str, Field(min_length=1)]] = None
    email: Optional[EmailStr] = None
    photo: Optional[str] = None
    role: Optional[Role] = None

    @model_validator(mode="before")
    @classmethod
    def no_password_updates(cls, data: Any) -> Any:
        return _reject_password_fields(
            data, "This route is not for password updates. Please use /updatePassword."
        )

    def changes(self) -> dict:
        data = {k: v for k, v in self.model_dump(exclude_unset=True).items() if v is not None}
        if "email" in data:
            data["email"] = data["email"].lower()
        return data


class UpdateProfileBody(BaseModel):
    """Request body for PATCH /users/updateMyProfile. Only name, email and photo."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[Annotated[str, Field(min_length=1)]] = None
    email: Optional[EmailStr] = None
    photo: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def no_password_updates(cls, data: Any) -> Any:
        return _reject_password_fields(data, "You can not update your password here.")

    def changes(self) -> dict:
        data = {k: v for k, v in self.model_dump(exclude_unset=True).items() if v is not None}
        if "email" in data:
            data["email"] = data["email"].lower()
        return data


class LoginBody(BaseModel):
    email: EmailStr
    password: Annotated[str, Field(min_length=1)]


class ForgotPasswordBody(BaseModel):
    email: EmailStr


class ResetPasswordBody(BaseModel):
    model_config = ConfigDict(extra="forbid")

    password: Password
    confirmPassword: ConfirmPassword


class UpdatePasswordBody(BaseModel):
    model_config = ConfigDict(extra="forbid")

    currentPassword: Annotated[str, Field(min_length=1)]
    password: Password
    confirmPassword: ConfirmPassword
