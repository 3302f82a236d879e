"""Pydantic schemas for user data endpoints.

Field names follow the public JSON contract (``userID``, ``oldPassword``...).
"""

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    username: str
    password: str
    email: str


class AuthenticateRequest(BaseModel):
    email: str
    password: str


class OAuthRequest(BaseModel):
    username: str
    email: str
    provider: str


class SetInfoRequest(BaseModel):
    user_id: str = Field(alias="userID")
    info: dict[str, str]


class GetInfoRequest(BaseModel):
    user_id: str = Field(alias="userID")
    fields: str | list[str]

    def field_names(self) -> list[str]:
        if isinstance(self.fields, str):
            return [name.strip() for name in self.fields.split(",")]
        return self.fields


class ChangePasswordRequest(BaseModel):
    email: str
    old_password: str = Field(alias="oldPassword")
    new_password: str = Field(alias="newPassword")


class DeleteUserRequest(BaseModel):
    user_id: str = Field(alias="userID")


class ResetTokenRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    email: str
    token: str
    new_password: str = Field(alias="newPassword")


class UserResponse(BaseModel):
    id: str
    username: str
    email: str


class OAuthUserResponse(UserResponse):
    provider: str


class FieldsResponse(BaseModel):
    fields: dict[str, str]


class MessageResponse(BaseModel):
    message: str
