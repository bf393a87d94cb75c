"""
Repositories for the tours and users collections.

Repositories are built once at startup from the application database and
stored on app.state; handlers receive them through the dependencies in
tours_api/dependencies.py. Slugs, the secret-tour filter, the discount check
and timestamps are applied here as explicit calls around each read and write.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pymongo import ReturnDocument
from pymongo.asynchronous.collection import AsyncCollection

from tours_api.db.documents import (
    check_price_discount,
    default_projection,
    hide_secret,
    hide_secret_pipeline,
    to_object_id,
    with_slug,
)

logger = logging.getLogger(__name__)

SortSpec = Sequence[Tuple[str, int]]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TourRepository:
    """Data access for tour documents. Secret tours are hidden from every read."""

    def __init__(self, collection: AsyncCollection):
        self._collection = collection

    async def find(
        self,
        query_filter: Dict[str, Any],
        sort: Optional[SortSpec] = None,
        projection: Optional[Dict[str, int]] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        cursor = self._collection.find(hide_secret(query_filter), default_projection(projection))
        if sort:
            cursor = cursor.sort(list(sort))
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=None)

    async def count(self, query_filter: Optional[Dict[str, Any]] = None) -> int:
        return await self._collection.count_documents(hide_secret(query_filter))

    async def find_by_id(self, tour_id: str) -> Optional[Dict[str, Any]]:
        oid = to_object_id(tour_id)
        if oid is None:
            return None
        return await self._collection.find_one(
            hide_secret({"_id": oid}), default_projection(None)
        )

    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        """
        Store a new tour.

        Raises:
            DocumentValidationError: If priceDiscount is not below price
            pymongo.errors.DuplicateKeyError: If the name is already taken
        """
        to_store = with_slug(doc)
        to_store.setdefault("createdAt", _now())
        check_price_discount(to_store)

        result = await self._collection.insert_one(to_store)
        to_store["_id"] = result.inserted_id
        logger.info(f"Tour {result.inserted_id} created")
        return to_store

    async def update(self, tour_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Apply a partial update and return the updated document.

        The caller passes the merged document's changed fields; the discount
        rule is checked against the stored document merged with `changes`.
        """
        oid = to_object_id(tour_id)
        if oid is None:
            return None

        current = await self._collection.find_one(hide_secret({"_id": oid}))
        if current is None:
            return None

        to_set = with_slug(changes) if "name" in changes else dict(changes)
        check_price_discount({**current, **to_set})

        updated = await self._collection.find_one_and_update(
            hide_secret({"_id": oid}),
            {"$set": to_set},
            projection=default_projection(None),
            return_document=ReturnDocument.AFTER,
        )
        if updated is not None:
            logger.info(f"Tour {tour_id} updated ({', '.join(sorted(to_set))})")
        return updated

    async def delete(self, tour_id: str) -> bool:
        oid = to_object_id(tour_id)
        if oid is None:
            return False
        result = await self._collection.delete_one(hide_secret({"_id": oid}))
        return result.deleted_count == 1

    async def aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        cursor = await self._collection.aggregate(hide_secret_pipeline(pipeline))
        return await cursor.to_list(length=None)


class UserRepository:
    """Data access for user documents."""

    def __init__(self, collection: AsyncCollection):
        self._collection = collection

    async def find_all(self) -> List[Dict[str, Any]]:
        cursor = self._collection.find({})
        return await cursor.to_list(length=None)

    async def find_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        return await self._collection.find_one({"_id": oid})

    async def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return await self._collection.find_one({"email": email.lower()})

    async def find_by_reset_token(self, hashed_token: str) -> Optional[Dict[str, Any]]:
        """Find the user owning an unexpired password reset token."""
        return await self._collection.find_one(
            {
                "passwordResetToken": hashed_token,
                "passwordResetExpires": {"$gt": _now()},
            }
        )

    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        """
        Store a new user.

        Raises:
            pymongo.errors.DuplicateKeyError: If the email is already registered
        """
        now = _now()
        to_store = {**doc, "createdAt": now, "updatedAt": now}
        if to_store.get("email"):
            to_store["email"] = to_store["email"].lower()

        result = await self._collection.insert_one(to_store)
        to_store["_id"] = result.inserted_id
        logger.info(f"User {result.inserted_id} created")
        return to_store

    async def update(
        self,
        user_id: str,
        changes: Dict[str, Any],
        unset: Sequence[str] = (),
    ) -> Optional[Dict[str, Any]]:
        oid = to_object_id(user_id)
        if oid is None:
            return None

        to_set = {**changes, "updatedAt": _now()}
        if to_set.get("email"):
            to_set["email"] = to_set["email"].lower()
        update: Dict[str, Any] = {"$set": to_set}
        if unset:
            update["$unset"] = {field: "" for field in unset}

        return await self._collection.find_one_and_update(
            {"_id": oid}, update, return_document=ReturnDocument.AFTER
        )

    async def delete(self, user_id: str) -> bool:
        oid = to_object_id(user_id)
        if oid is None:
            return False
        result = await self._collection.delete_one({"_id": oid})
        return result.deleted_count == 1
