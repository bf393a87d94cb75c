"""
User service.

Handles CRUD operations for user documents. Passwords are hashed before
they reach the repository; confirmPassword is never stored.
"""

import asyncio
import logging
from typing import Any, Dict, List

from tours_api.db.repositories import UserRepository
from tours_api.errors import NotFoundError
from tours_api.services.auth_service import hash_password
from tours_api.validation.users import UserCreateBody, UserPatchBody

logger = logging.getLogger(__name__)

USER_NOT_FOUND = "No user found with that ID"


async def list_users(repo: UserRepository) -> List[Dict[str, Any]]:
    users = await repo.find_all()
    logger.info(f"Found {len(users)} users")
    return users


async def get_user(repo: UserRepository, user_id: str) -> Dict[str, Any]:
    user = await repo.find_by_id(user_id)
    if user is None:
        logger.warning(f"User {user_id} not found")
        raise NotFoundError(USER_NOT_FOUND)
    return user


async def create_user(repo: UserRepository, body: UserCreateBody) -> Dict[str, Any]:
    doc = {
        "name": body.name,
        "email": body.email,
        "photo": body.photo,
        "role": body.role,
        "password": await asyncio.to_thread(hash_password, body.password),
    }
    return await repo.insert({key: value for key, value in doc.items() if value is not None})


async def update_user(repo: UserRepository, user_id: str, patch: UserPatchBody) -> Dict[str, Any]:
    """
    Apply a partial update to a user.

    Raises:
        NotFoundError: If no user has that ID
    """
    changes = patch.changes()
    if not changes:
        return await get_user(repo, user_id)

    updated = await repo.update(user_id, changes)
    if updated is None:
        raise NotFoundError(USER_NOT_FOUND)
    return updated


async def delete_user(repo: UserRepository, user_id: str) -> None:
    deleted = await repo.delete(user_id)
    if not deleted:
        raise NotFoundError(USER_NOT_FOUND)
    logger.info(f"User {user_id} deleted")
