"""
Document rules applied by the repositories around every read and write.

These are plain functions so each side effect is visible where the
repository calls it:
- slug derivation before a tour is written
- the secret-tour filter added to every default read and aggregation
- the price discount rule checked on the document about to be stored
- default hiding of createdAt
- conversion of stored documents into JSON-ready dicts
"""

from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from slugify import slugify

from tours_api.errors import DocumentValidationError

SECRET_TOUR_FILTER = {"secretTour": {"$ne": True}}

# Stored but hidden unless explicitly selected
HIDDEN_BY_DEFAULT = ("createdAt",)

# Never returned to clients
PRIVATE_USER_FIELDS = ("password", "passwordResetToken", "passwordResetExpires")


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse an id, returning None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    # ObjectId(None) would generate a fresh id
    if not isinstance(value, str):
        return None
    try:
        return ObjectId(value)
    except InvalidId:
        return None


def slugify_name(name: str) -> str:
    return slugify(name, lowercase=True)


def with_slug(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of the tour document carrying a slug derived from its name."""
    result = dict(doc)
    if result.get("name"):
        result["slug"] = slugify_name(result["name"])
    return result


def hide_secret(query_filter: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Add the standing secret-tour exclusion to a find filter."""
    query_filter = dict(query_filter or {})
    if "secretTour" in query_filter:
        return {"$and": [query_filter, SECRET_TOUR_FILTER]}
    query_filter.update(SECRET_TOUR_FILTER)
    return query_filter


def hide_secret_pipeline(pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Prepend the secret-tour exclusion to an aggregation pipeline."""
    return [{"$match": dict(SECRET_TOUR_FILTER)}, *pipeline]


def check_price_discount(doc: Dict[str, Any]) -> None:
    """
    Enforce priceDiscount < price on a document about to be stored.

    Raises:
        DocumentValidationError: If the discount is not below the price
    """
    discount = doc.get("priceDiscount")
    price = doc.get("price")
    if discount is None or price is None:
        return
    if discount >= price:
        raise DocumentValidationError(
            f"Discount price ({discount}) should be below regular price",
            path="priceDiscount",
        )


def default_projection(projection: Optional[Dict[str, int]]) -> Dict[str, int]:
    """
    Apply the hidden-by-default fields to a projection.

    Inclusion projections are left alone (a field is only returned when it is
    listed). Exclusion projections and the empty projection also drop the
    hidden fields.
    """
    if projection and any(value == 1 for value in projection.values()):
        return dict(projection)
    result = dict(projection or {})
    for field in HIDDEN_BY_DEFAULT:
        result[field] = 0
    return result


def serialize_document(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Convert a stored document into a JSON-ready dict.

    `_id` becomes a string `id`, `__v` is dropped, private user fields are
    removed and tours get the derived `durationWeeks`.
    """
    if doc is None:
        return None
    result = {key: value for key, value in doc.items() if key not in ("_id", "__v")}
    if "_id" in doc:
        result = {"id": str(doc["_id"]), **result}
    for field in PRIVATE_USER_FIELDS:
        result.pop(field, None)
    if isinstance(result.get("duration"), (int, float)):
        result["durationWeeks"] = result["duration"] / 7
    return result
