"""
FastAPI dependency functions for authentication.

`get_current_user` verifies the Bearer JWT issued by /users/login (or
signup / password flows) and loads the user it belongs to.
`restrict_to` builds a dependency that additionally checks the user's role.
"""

import logging
from dataclasses import dataclass
from typing import Annotated, Any, Dict, Optional

from fastapi import Depends, Header

from tours_api.db.repositories import UserRepository
from tours_api.dependencies import get_user_repository
from tours_api.errors import ForbiddenError, UnauthorizedError
from tours_api.services.auth_service import changed_password_after, decode_token

logger = logging.getLogger(__name__)


@dataclass
class AuthenticatedUser:
    """
    The user a request is authenticated as.

    Attributes:
        user_id: The user's ObjectId as a string (the token's 'sub' claim)
        role: One of user / guide / lead-guide / admin
        document: The stored user document
    """
    user_id: str
    role: str
    document: Dict[str, Any]


def _extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user(
    repo: Annotated[UserRepository, Depends(get_user_repository)],
    authorization: Annotated[Optional[str], Header()] = None,
) -> AuthenticatedUser:
    """
    Verify the Bearer token and load the user.

    Raises:
        UnauthorizedError: 401 if the token is missing or invalid, the user no
            longer exists, or the password changed after the token was issued
    """
    token = _extract_bearer(authorization)
    if token is None:
        raise UnauthorizedError("You are not logged in! Please log in to get access.")

    payload = decode_token(token)
    user = await repo.find_by_id(str(payload["sub"]))
    if user is None:
        raise UnauthorizedError("The user belonging to this token does no longer exist.")

    if changed_password_after(user, int(payload["iat"])):
        raise UnauthorizedError("User recently changed password! Please log in again.")

    return AuthenticatedUser(
        user_id=str(user["_id"]),
        role=user.get("role", "user"),
        document=user,
    )


def restrict_to(*roles: str):
    """
    Build a dependency allowing only the given roles.

    Usage:
        >>> @router.delete("/{id}", dependencies=[Depends(restrict_to("admin", "lead-guide"))])
    """
    async def role_dependency(
        auth_user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    ) -> AuthenticatedUser:
        if auth_user.role not in roles:
            logger.warning(f"User {auth_user.user_id} with role {auth_user.role} denied")
            raise ForbiddenError()
        return auth_user

    return role_dependency
