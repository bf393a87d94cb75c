"""
Tour service.

Handles CRUD operations and reports for tours. Every function takes the
TourRepository as its first argument; secret tours are hidden by the
repository, so nothing here needs to filter them.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from tours_api.db.repositories import TourRepository
from tours_api.errors import NotFoundError, RequestValidationFailed
from tours_api.validation.tours import TourCreateBody, TourPatchBody

logger = logging.getLogger(__name__)

TOUR_NOT_FOUND = "No tour found with that ID"


async def get_tour(repo: TourRepository, tour_id: str) -> Dict[str, Any]:
    """
    Fetch a single tour by ID.

    Raises:
        NotFoundError: If no visible tour has that ID
    """
    tour = await repo.find_by_id(tour_id)
    if tour is None:
        logger.warning(f"Tour {tour_id} not found")
        raise NotFoundError(TOUR_NOT_FOUND)
    return tour


async def create_tour(repo: TourRepository, body: TourCreateBody) -> Dict[str, Any]:
    doc = {key: value for key, value in body.model_dump().items() if value is not None}
    return await repo.insert(doc)


async def update_tour(
    repo: TourRepository,
    tour_id: str,
    patch: TourPatchBody,
) -> Dict[str, Any]:
    """
    Patch a tour: load, merge, re-check the price discount, persist.

    Raises:
        NotFoundError: If no visible tour has that ID
        RequestValidationFailed: If the merged tour has priceDiscount > price
    """
    existing = await get_tour(repo, tour_id)
    changes = patch.changes()
    merged = {**existing, **changes}

    discount = merged.get("priceDiscount")
    price = merged.get("price")
    if discount is not None and price is not None and discount > price:
        raise RequestValidationFailed.single(
            "body", "priceDiscount", "Discount price cannot be greater than regular price"
        )

    if not changes:
        return existing

    updated = await repo.update(tour_id, changes)
    if updated is None:
        raise NotFoundError(TOUR_NOT_FOUND)
    return updated


async def delete_tour(repo: TourRepository, tour_id: str) -> None:
    deleted = await repo.delete(tour_id)
    if not deleted:
        raise NotFoundError(TOUR_NOT_FOUND)
    logger.info(f"Tour {tour_id} deleted")


async def get_tour_stats(repo: TourRepository) -> List[Dict[str, Any]]:
    """Per-difficulty statistics over tours rated 4.5 or better, cheapest group first."""
    pipeline = [
        {"$match": {"ratingsAverage": {"$gte": 4.5}}},
        {
            "$group": {
                "_id": {"$toUpper": "$difficulty"},
                "numTours": {"$sum": 1},
                "numRatings": {"$sum": "$ratingsQuantity"},
                "avgRating": {"$avg": "$ratingsAverage"},
                "avgPrice": {"$avg": "$price"},
                "minPrice": {"$min": "$price"},
                "maxPrice": {"$max": "$price"},
            }
        },
        {"$addFields": {"difficulty": "$_id"}},
        {"$project": {"_id": 0}},
        {"$sort": {"avgPrice": 1}},
    ]
    return await repo.aggregate(pipeline)


def monthly_plan_pipeline(year: int) -> List[Dict[str, Any]]:
    start = datetime(year, 1, 1, tzinfo=timezone.utc)
    end = datetime(year, 12, 31, 23, 59, 59, 999000, tzinfo=timezone.utc)
    return [
        {"$unwind": "$startDates"},
        {"$match": {"startDates": {"$gte": start, "$lte": end}}},
        {
            "$group": {
                "_id": {"$month": "$startDates"},
                "numTourStarts": {"$sum": 1},
                "tours": {"$push": "$name"},
            }
        },
        {"$addFields": {"month": "$_id"}},
        {"$project": {"_id": 0}},
        {"$sort": {"numTourStarts": -1}},
        {"$limit": 12},
    ]


async def get_monthly_plan(repo: TourRepository, year: int) -> List[Dict[str, Any]]:
    """Tour starts per month of `year`, busiest month first."""
    return await repo.aggregate(monthly_plan_pipeline(year))
