"""
User and authentication API endpoints.

Auth routes (signup, login, password reset / update, own profile) are
registered before the /{id} routes so their static paths win.
"""

import logging
from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends, Request, Response, status

from tours_api.auth.dependencies import AuthenticatedUser, get_current_user
from tours_api.db.repositories import UserRepository
from tours_api.dependencies import get_user_repository
from tours_api.schemas.responses import document, listing
from tours_api.services import auth_service, user_service
from tours_api.validation.request import ValidatedRequest, validate_request
from tours_api.validation.users import (
    ForgotPasswordBody,
    LoginBody,
    ResetPasswordBody,
    ResetTokenParams,
    SignupBody,
    UpdatePasswordBody,
    UpdateProfileBody,
    UserCreateBody,
    UserIdParams,
    UserPatchBody,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["users"])

UserRepo = Annotated[UserRepository, Depends(get_user_repository)]
CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]


# --- Authentication ---

@router.post("/signup", status_code=status.HTTP_201_CREATED, summary="Sign up")
async def signup(
    validated: Annotated[ValidatedRequest, Depends(validate_request(body=SignupBody))],
    repo: UserRepo,
) -> Dict[str, Any]:
    user, token = await auth_service.signup(repo, validated.body)
    return document("user", user, token=token)


@router.post("/login", status_code=status.HTTP_200_OK, summary="Log in")
async def login(
    validated: Annotated[ValidatedRequest, Depends(validate_request(body=LoginBody))],
    repo: UserRepo,
) -> Dict[str, Any]:
    body = validated.body
    user, token = await auth_service.login(repo, body.email, body.password)
    return document("user", user, token=token)


@router.post("/forgotPassword", status_code=status.HTTP_200_OK, summary="Request a password reset email")
async def forgot_password(
    request: Request,
    validated: Annotated[ValidatedRequest, Depends(validate_request(body=ForgotPasswordBody))],
    repo: UserRepo,
) -> Dict[str, Any]:
    reset_url = f"{str(request.base_url).rstrip('/')}{router.prefix}/resetPassword/"
    await auth_service.forgot_password(repo, validated.body.email, reset_url)
    return {"status": "success", "message": "Token sent to email!"}


@router.patch("/resetPassword/{token}", status_code=status.HTTP_200_OK, summary="Reset password")
async def reset_password(
    validated: Annotated[
        ValidatedRequest,
        Depends(validate_request(params=ResetTokenParams, body=ResetPasswordBody)),
    ],
    repo: UserRepo,
) -> Dict[str, Any]:
    user, token = await auth_service.reset_password(
        repo, validated.params.token, validated.body.password
    )
    return document("user", user, token=token)


@router.patch("/updatePassword", status_code=status.HTTP_200_OK, summary="Change own password")
async def update_password(
    validated: Annotated[ValidatedRequest, Depends(validate_request(body=UpdatePasswordBody))],
    auth_user: CurrentUser,
    repo: UserRepo,
) -> Dict[str, Any]:
    body = validated.body
    user, token = await auth_service.update_password(
        repo, auth_user.document, body.currentPassword, body.password
    )
    return document("user", user, token=token)


@router.patch("/updateMyProfile", status_code=status.HTTP_200_OK, summary="Update own profile")
async def update_my_profile(
    validated: Annotated[ValidatedRequest, Depends(validate_request(body=UpdateProfileBody))],
    auth_user: CurrentUser,
    repo: UserRepo,
) -> Dict[str, Any]:
    user = await auth_service.update_my_profile(repo, auth_user.document, validated.body.changes())
    return document("user", user)


@router.delete("/deleteMyProfile", status_code=status.HTTP_204_NO_CONTENT, summary="Delete own profile")
async def delete_my_profile(auth_user: CurrentUser, repo: UserRepo) -> Response:
    await auth_service.delete_my_profile(repo, auth_user.document)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- User CRUD ---

@router.get("", status_code=status.HTTP_200_OK, summary="List users")
async def get_all_users(auth_user: CurrentUser, repo: UserRepo) -> Dict[str, Any]:
    users = await user_service.list_users(repo)
    return listing("users", users)


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create user")
async def create_user(
    validated: Annotated[ValidatedRequest, Depends(validate_request(body=UserCreateBody))],
    repo: UserRepo,
) -> Dict[str, Any]:
    user = await user_service.create_user(repo, validated.body)
    return document("user", user)


@router.get("/{id}", status_code=status.HTTP_200_OK, summary="Get user")
async def get_user(
    validated: Annotated[ValidatedRequest, Depends(validate_request(params=UserIdParams))],
    repo: UserRepo,
) -> Dict[str, Any]:
    user = await user_service.get_user(repo, validated.params.id)
    return document("user", user)


@router.patch("/{id}", status_code=status.HTTP_200_OK, summary="Update user")
async def update_user(
    validated: Annotated[
        ValidatedRequest,
        Depends(validate_request(params=UserIdParams, body=UserPatchBody)),
    ],
    repo: UserRepo,
) -> Dict[str, Any]:
    user = await user_service.update_user(repo, validated.params.id, validated.body)
    return document("user", user)


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete user")
async def delete_user(
    validated: Annotated[ValidatedRequest, Depends(validate_request(params=UserIdParams))],
    repo: UserRepo,
) -> Response:
    await user_service.delete_user(repo, validated.params.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
