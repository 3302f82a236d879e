"""User data API endpoints."""

import logging

from fastapi import APIRouter, Depends

from app.dependencies import get_identity_service
from app.schemas.user_data import (
    AuthenticateRequest,
    ChangePasswordRequest,
    DeleteUserRequest,
    FieldsResponse,
    GetInfoRequest,
    MessageResponse,
    OAuthRequest,
    OAuthUserResponse,
    RegisterRequest,
    ResetPasswordRequest,
    ResetTokenRequest,
    SetInfoRequest,
    UserResponse,
)
from app.services.identity import IdentityService

logger = logging.getLogger("user_data")

router = APIRouter(prefix="/user-data", tags=["User Data"])

# Message returned when a request body lacks required fields, keyed by endpoint name
REQUIRED_FIELDS_MESSAGES = {
    "register": "username, password and email must be passed in body",
    "authenticate": "email and password must be passed in body",
    "handle-oauth": "username, email and provider must be passed in body",
    "set": "userID and info must be passed in body",
    "get": "userID and field must be passed in body",
    "change-pw": "email, oldPassword and newPassword must be passed in body",
    "delete": "userID must be passed in body",
    "pw-reset-token": "email must be passed in body",
    "pw-reset": "email, token, and newPassword must be passed in body",
}


@router.post("/register", response_model=UserResponse)
def register(body: RegisterRequest, service: IdentityService = Depends(get_identity_service)) -> UserResponse:
    """Register a password account."""
    result = service.register(body.username, body.password, body.email)
    return UserResponse(id=result.user_id, username=result.username, email=result.email)


@router.post("/authenticate", response_model=UserResponse)
def authenticate(
    body: AuthenticateRequest, service: IdentityService = Depends(get_identity_service)
) -> UserResponse:
    """Check an email and password and return the account's id and username."""
    user_id = service.authenticate(body.email, body.password)
    profile = service.get_profile(user_id, ["username"])
    return UserResponse(id=user_id, username=profile["username"], email=body.email)


@router.post("/handle-oauth", response_model=OAuthUserResponse)
def handle_oauth(body: OAuthRequest, service: IdentityService = Depends(get_identity_service)) -> OAuthUserResponse:
    """Sign in with an OAuth provider assertion, registering on first use."""
    user_id = service.authenticate_or_register_oauth(body.username, body.provider, body.email)
    return OAuthUserResponse(id=user_id, username=body.username, email=body.email, provider=body.provider)


@router.patch("/set", response_model=MessageResponse)
def set_info(body: SetInfoRequest, service: IdentityService = Depends(get_identity_service)) -> MessageResponse:
    service.set_profile(body.user_id, body.info)
    return MessageResponse(message=f"Provided information has been successfully set for user {body.user_id}")


@router.get("/get", response_model=FieldsResponse)
def get_info(body: GetInfoRequest, service: IdentityService = Depends(get_identity_service)) -> FieldsResponse:
    """Read profile fields. The request carries a JSON body despite being a GET."""
    return FieldsResponse(fields=service.get_profile(body.user_id, body.field_names()))


@router.patch("/change-pw", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest, service: IdentityService = Depends(get_identity_service)
) -> MessageResponse:
    service.change_password(body.email, body.old_password, body.new_password)
    return MessageResponse(message=f"User with email {body.email} has successfully changed their password.")


@router.delete("/delete", response_model=MessageResponse)
def delete_user(body: DeleteUserRequest, service: IdentityService = Depends(get_identity_service)) -> MessageResponse:
    service.delete_user(body.user_id)
    return MessageResponse(message=f"userID {body.user_id} successfully deleted.")


@router.post("/pw-reset-token", response_model=MessageResponse)
def send_reset_token(
    body: ResetTokenRequest, service: IdentityService = Depends(get_identity_service)
) -> MessageResponse:
    """Email a password reset token. The token itself is never returned."""
    service.issue_reset_token(body.email)
    return MessageResponse(
        message=f"User with email {body.email} has successfully been emailed a password reset token."
    )


@router.patch("/pw-reset", response_model=MessageResponse)
def reset_password(
    body: ResetPasswordRequest, service: IdentityService = Depends(get_identity_service)
) -> MessageResponse:
    service.reset_password(body.email, body.token, body.new_password)
    return MessageResponse(message=f"User with email {body.email} has successfully reset their password")
