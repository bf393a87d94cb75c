"""
Tour API endpoints.

Every handler follows the same flow:
- Validate: params / query / body checked by validate_request before the
  handler runs (400 envelope on failure)
- Auth: the listing needs a login; PATCH and DELETE require an admin or
  lead-guide
- Call Service: one tour_service / tour_query call
- Map Output: wrap stored documents in the success envelope
"""

import logging
from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends, Response, status

from tours_api.auth.dependencies import AuthenticatedUser, get_current_user, restrict_to
from tours_api.db.repositories import TourRepository
from tours_api.dependencies import get_tour_repository
from tours_api.schemas.responses import document, listing, success
from tours_api.services import tour_service
from tours_api.services.tour_query import list_tours, top_tours_query
from tours_api.validation.request import ValidatedRequest, validate_request
from tours_api.validation.tours import (
    EmptyQuery,
    MonthlyPlanParams,
    TourCreateBody,
    TourIdParams,
    TourListQuery,
    TourPatchBody,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tours", tags=["tours"])

TourRepo = Annotated[TourRepository, Depends(get_tour_repository)]


@router.get(
    "/top-5",
    status_code=status.HTTP_200_OK,
    summary="Five best rated tours",
)
async def get_top_tours(
    validated: Annotated[ValidatedRequest, Depends(validate_request(query=EmptyQuery))],
    repo: TourRepo,
) -> Dict[str, Any]:
    """Alias of the listing: limit 5, best rated first, cheapest on ties."""
    tours, list_query = await list_tours(repo, top_tours_query())
    return listing("tours", tours, page=list_query.page)


@router.get(
    "/stats",
    status_code=status.HTTP_200_OK,
    summary="Tour statistics by difficulty",
)
async def get_tour_stats(repo: TourRepo) -> Dict[str, Any]:
    stats = await tour_service.get_tour_stats(repo)
    return success(stats=stats)


@router.get(
    "/monthly-plan/{year}",
    status_code=status.HTTP_200_OK,
    summary="Tour starts per month",
)
async def get_monthly_plan(
    validated: Annotated[ValidatedRequest, Depends(validate_request(params=MonthlyPlanParams))],
    repo: TourRepo,
) -> Dict[str, Any]:
    year = validated.params.year
    plan = await tour_service.get_monthly_plan(repo, year)
    logger.info(f"Monthly plan for {year}: {len(plan)} months")
    return success(plan=plan)


@router.get(
    "",
    status_code=status.HTTP_200_OK,
    summary="List tours",
    description="""
    List tours with filtering, sorting, field selection and pagination.
    Requires a Bearer token; a page past the last match is a 404.

    Query parameters:
    - difficulty: easy | medium | difficult
    - duration, price: exact value or range (duration[gte]=5&duration[lt]=10)
    - sort: comma-separated field:direction (price:desc,ratingsAverage:asc)
    - fields: comma-separated names to include, or prefixed with - to exclude
    - page, limit: pagination (defaults 1 and 10)
    """,
)
async def get_all_tours(
    validated: Annotated[ValidatedRequest, Depends(validate_request(query=TourListQuery))],
    auth_user: Annotated[AuthenticatedUser, Depends(get_current_user)],
    repo: TourRepo,
) -> Dict[str, Any]:
    tours, list_query = await list_tours(repo, validated.query)
    logger.info(f"Returning {len(tours)} tours (page {list_query.page}) to user {auth_user.user_id}")
    return listing("tours", tours, page=list_query.page)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create tour",
)
async def create_tour(
    validated: Annotated[ValidatedRequest, Depends(validate_request(body=TourCreateBody))],
    repo: TourRepo,
) -> Dict[str, Any]:
    tour = await tour_service.create_tour(repo, validated.body)
    return document("tour", tour)


@router.get(
    "/{id}",
    status_code=status.HTTP_200_OK,
    summary="Get tour",
)
async def get_tour(
    validated: Annotated[ValidatedRequest, Depends(validate_request(params=TourIdParams))],
    repo: TourRepo,
) -> Dict[str, Any]:
    tour = await tour_service.get_tour(repo, validated.params.id)
    return document("tour", tour)


@router.patch(
    "/{id}",
    status_code=status.HTTP_200_OK,
    summary="Update tour",
    description="Partial update. Requires an admin or lead-guide.",
)
async def update_tour(
    validated: Annotated[
        ValidatedRequest,
        Depends(validate_request(params=TourIdParams, body=TourPatchBody)),
    ],
    auth_user: Annotated[AuthenticatedUser, Depends(restrict_to("admin", "lead-guide"))],
    repo: TourRepo,
) -> Dict[str, Any]:
    logger.info(f"User {auth_user.user_id} updating tour {validated.params.id}")
    tour = await tour_service.update_tour(repo, validated.params.id, validated.body)
    return document("tour", tour)


@router.delete(
    "/{id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete tour",
    description="Requires an admin or lead-guide.",
)
async def delete_tour(
    validated: Annotated[ValidatedRequest, Depends(validate_request(params=TourIdParams))],
    auth_user: Annotated[AuthenticatedUser, Depends(restrict_to("admin", "lead-guide"))],
    repo: TourRepo,
) -> Response:
    logger.info(f"User {auth_user.user_id} deleting tour {validated.params.id}")
    await tour_service.delete_tour(repo, validated.params.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
