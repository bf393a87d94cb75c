"""
Authentication service.

Password hashing (passlib), JWT issuing / verification (PyJWT, HS256) and the
signup / login / password reset flows behind the /users auth routes.
"""

import asyncio
import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError
from passlib.context import CryptContext

from tours_api.config import settings
from tours_api.db.repositories import UserRepository
from tours_api.errors import AppError, NotFoundError, UnauthorizedError
from tours_api.utils.email import send_email
from tours_api.validation.users import SignupBody

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
RESET_TOKEN_TTL = timedelta(minutes=10)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def sign_token(user_id: str, now: Optional[datetime] = None) -> str:
    """Issue a JWT whose `sub` is the user id."""
    now = now or datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "iat": int(now.timestamp()),
        "exp": now + timedelta(days=settings.JWT_EXPIRES_IN_DAYS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Verify a JWT and return its claims.

    Raises:
        UnauthorizedError: If the token is expired, malformed or badly signed
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["sub", "iat", "exp"]},
        )
    except ExpiredSignatureError:
        raise UnauthorizedError("Your token has expired! Please log in again.")
    except InvalidTokenError as e:
        logger.warning(f"Invalid token: {e}")
        raise UnauthorizedError("Invalid token. Please log in again!")


def changed_password_after(user: Dict[str, Any], issued_at: int) -> bool:
    """True when the user changed password after the token was issued."""
    changed_at = user.get("passwordChangedAt")
    if changed_at is None:
        return False
    if changed_at.tzinfo is None:
        changed_at = changed_at.replace(tzinfo=timezone.utc)
    return int(changed_at.timestamp()) > issued_at


async def _password_changes(password: str) -> Dict[str, Any]:
    # One second in the past so a token issued right after still validates
    return {
        "password": await asyncio.to_thread(hash_password, password),
        "passwordChangedAt": datetime.now(timezone.utc) - timedelta(seconds=1),
    }


async def signup(repo: UserRepository, body: SignupBody) -> Tuple[Dict[str, Any], str]:
    """Create a regular user and log them in."""
    user = await repo.insert(
        {
            "name": body.name,
            "email": body.email,
            "photo": body.photo,
            "role": "user",
            "password": await asyncio.to_thread(hash_password, body.password),
        }
    )
    return user, sign_token(str(user["_id"]))


async def login(repo: UserRepository, email: str, password: str) -> Tuple[Dict[str, Any], str]:
    """
    Check credentials and issue a token.

    Raises:
        UnauthorizedError: If the email is unknown or the password is wrong
    """
    user = await repo.find_by_email(email)
    if user is None or not await asyncio.to_thread(
        verify_password, password, user.get("password", "")
    ):
        raise UnauthorizedError("Incorrect email or password")
    logger.info(f"User {user['_id']} logged in")
    return user, sign_token(str(user["_id"]))


async def forgot_password(repo: UserRepository, email: str, reset_url: str) -> None:
    """
    Store a hashed single-use reset token and email the plain token to the user.

    Args:
        reset_url: URL prefix; the plain token is appended to it

    Raises:
        NotFoundError: If no user has that email
        AppError: 500 if the email could not be sent (the token is discarded)
    """
    user = await repo.find_by_email(email)
    if user is None:
        raise NotFoundError("There is no user with that email address.")

    token = secrets.token_hex(32)
    user_id = str(user["_id"])
    await repo.update(
        user_id,
        {
            "passwordResetToken": hash_reset_token(token),
            "passwordResetExpires": datetime.now(timezone.utc) + RESET_TOKEN_TTL,
        },
    )

    message = (
        "Forgot your password? Submit a PATCH request with your new password and "
        f"confirmPassword to: {reset_url}{token}.\n"
        "If you didn't forget your password, please ignore this email!"
    )
    try:
        await asyncio.to_thread(
            send_email,
            user["email"],
            "Your password reset token (valid for 10 min)",
            message,
        )
    except Exception as e:
        logger.error(f"Failed to send password reset email for user {user_id}: {e}")
        await repo.update(user_id, {}, unset=("passwordResetToken", "passwordResetExpires"))
        raise AppError("There was an error sending the email. Try again later!", 500)


async def reset_password(
    repo: UserRepository,
    token: str,
    password: str,
) -> Tuple[Dict[str, Any], str]:
    """
    Set a new password using an emailed reset token.

    Raises:
        AppError: 400 if the token is unknown or expired
    """
    user = await repo.find_by_reset_token(hash_reset_token(token))
    if user is None:
        raise AppError("Token is invalid or has expired", 400)

    user_id = str(user["_id"])
    updated = await repo.update(
        user_id,
        await _password_changes(password),
        unset=("passwordResetToken", "passwordResetExpires"),
    )
    logger.info(f"Password reset for user {user_id}")
    return updated, sign_token(user_id)


async def update_password(
    repo: UserRepository,
    user: Dict[str, Any],
    current_password: str,
    password: str,
) -> Tuple[Dict[str, Any], str]:
    """
    Change the logged-in user's password.

    Raises:
        UnauthorizedError: If current_password is wrong
    """
    user_id = str(user["_id"])
    stored = await repo.find_by_id(user_id)
    if stored is None or not await asyncio.to_thread(
        verify_password, current_password, stored.get("password", "")
    ):
        raise UnauthorizedError("Your current password is wrong.")

    updated = await repo.update(user_id, await _password_changes(password))
    logger.info(f"Password updated for user {user_id}")
    return updated, sign_token(user_id)


async def update_my_profile(
    repo: UserRepository,
    user: Dict[str, Any],
    changes: Dict[str, Any],
) -> Dict[str, Any]:
    if not changes:
        return user
    updated = await repo.update(str(user["_id"]), changes)
    if updated is None:
        raise NotFoundError("No user found with that ID")
    return updated


async def delete_my_profile(repo: UserRepository, user: Dict[str, Any]) -> None:
    await repo.delete(str(user["_id"]))
    logger.info(f"User {user['_id']} deleted their profile")
