"""
Tour listing query builder.

Translates a validated TourListQuery into the filter / sort / projection /
pagination arguments of TourRepository.find:

    ?sort=price:desc,ratingsAverage:asc&fields=name,price&page=2&limit=5&price[gte]=500

    filter     {"price": {"$gte": 500}}
    sort       [("price", -1), ("ratingsAverage", 1)]
    projection {"name": 1, "price": 1}
    skip 5, limit 5
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from tours_api.db.repositories import TourRepository
from tours_api.errors import NotFoundError
from tours_api.validation.tours import RangeFilter, TourListQuery

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
DEFAULT_SORT: List[Tuple[str, int]] = [("price", 1), ("ratingsAverage", -1)]

# Keys that shape the result set rather than filter it
RESULT_KEYS = ("page", "limit", "sort", "fields")

OPERATORS = {"gte": "$gte", "gt": "$gt", "lte": "$lte", "lt": "$lt"}


@dataclass
class ListQuery:
    """Arguments for one paginated tour listing."""
    filter: Dict[str, Any]
    sort: List[Tuple[str, int]]
    projection: Optional[Dict[str, int]]
    page: int
    limit: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def build_filter(query: TourListQuery) -> Dict[str, Any]:
    """Strip result-shaping keys and map range operators to MongoDB operators."""
    query_filter: Dict[str, Any] = {}
    for key, value in query:
        if key in RESULT_KEYS or value is None:
            continue
        if isinstance(value, RangeFilter):
            if value.exact is not None:
                query_filter[key] = value.exact
            else:
                query_filter[key] = {
                    OPERATORS[op]: bound for op, bound in value.operators().items()
                }
        else:
            query_filter[key] = value
    return query_filter


def build_sort(sort: Optional[List[str]]) -> List[Tuple[str, int]]:
    """["-price", "ratingsAverage"] -> [("price", -1), ("ratingsAverage", 1)]"""
    if not sort:
        return list(DEFAULT_SORT)
    return [(token[1:], -1) if token.startswith("-") else (token, 1) for token in sort]


def build_projection(fields: Optional[str]) -> Optional[Dict[str, int]]:
    """"name price" -> {"name": 1, "price": 1}; "-summary" -> {"summary": 0}"""
    if not fields:
        return None
    return {
        (token[1:] if token.startswith("-") else token): (0 if token.startswith("-") else 1)
        for token in fields.split()
    }


def build_list_query(query: TourListQuery) -> ListQuery:
    return ListQuery(
        filter=build_filter(query),
        sort=build_sort(query.sort),
        projection=build_projection(query.fields),
        page=query.page or DEFAULT_PAGE,
        limit=query.limit or DEFAULT_LIMIT,
    )


def top_tours_query() -> TourListQuery:
    """Listing used by /tours/top-5: five best rated, cheapest first on ties."""
    return TourListQuery.model_validate(
        {
            "limit": "5",
            "sort": "ratingsAverage:desc,price:asc",
            "fields": "name,price,ratingsAverage,summary,difficulty",
        }
    )


async def list_tours(
    repo: TourRepository,
    query: TourListQuery,
) -> Tuple[List[Dict[str, Any]], ListQuery]:
    """
    Run a validated listing query.

    Returns:
        (tours, list_query) so callers can report the page that was served

    Raises:
        NotFoundError: If the page starts at or past the last matching document
    """
    list_query = build_list_query(query)
    logger.debug(
        f"Listing tours filter={list_query.filter} sort={list_query.sort} "
        f"projection={list_query.projection} skip={list_query.skip} limit={list_query.limit}"
    )

    total = await repo.count(list_query.filter)
    if list_query.skip >= total:
        raise NotFoundError("This page does not exist")

    tours = await repo.find(
        list_query.filter,
        sort=list_query.sort,
        projection=list_query.projection,
        skip=list_query.skip,
        limit=list_query.limit,
    )
    return tours, list_query
