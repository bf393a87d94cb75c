"""
Tests for the /api/v1/tours endpoints.

Tests cover:
- Listing: query building, default sort, pagination past the last page, login
- Query validation envelopes (sort, fields, unknown keys)
- Fetch / create / patch / delete, including 404s and the discount rule
- Role restriction on PATCH and DELETE
- Aggregation routes (stats, monthly plan, top-5)
- Error envelopes for driver errors and unmatched routes
"""

from datetime import datetime, timezone

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import DuplicateKeyError

from tours_api.auth.dependencies import AuthenticatedUser, get_current_user
from tours_api.main import app
from tours_api.services.tour_query import DEFAULT_SORT

TOUR_ID = "5c88fa8cf4afda39709c2955"


def _as_user(role: str):
    async def dependency():
        return AuthenticatedUser(
            user_id="5c8a1d5b0190b214360dc057",
            role=role,
            document={"_id": ObjectId("5c8a1d5b0190b214360dc057"), "role": role},
        )
    return dependency


@pytest.fixture
def as_admin(client):
    app.dependency_overrides[get_current_user] = _as_user("admin")
    yield
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture
def as_regular_user(client):
    app.dependency_overrides[get_current_user] = _as_user("user")
    yield
    app.dependency_overrides.pop(get_current_user, None)


@pytest.mark.usefixtures("as_regular_user")
class TestListTours:
    """Tests for GET /api/v1/tours."""

    def test_default_listing_uses_default_sort_and_first_page(self, client, tour_repo, tour_doc):
        tour_repo.find.return_value = [tour_doc]

        response = client.get("/api/v1/tours")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["results"] == 1
        assert body["page"] == 1
        assert body["data"]["tours"][0]["id"] == TOUR_ID
        assert body["data"]["tours"][0]["durationWeeks"] == 1

        tour_repo.find.assert_awaited_once_with(
            {}, sort=DEFAULT_SORT, projection=None, skip=0, limit=10
        )
        # Page 1 is checked against the matching count too
        tour_repo.count.assert_awaited_once_with({})

    def test_sort_fields_and_pagination_are_translated(self, client, tour_repo):
        tour_repo.count.return_value = 12

        response = client.get(
            "/api/v1/tours?sort=price:desc,ratingsAverage:asc&fields=name,price&page=2&limit=5"
        )

        assert response.status_code == 200
        assert response.json()["page"] == 2
        tour_repo.find.assert_awaited_once_with(
            {},
            sort=[("price", -1), ("ratingsAverage", 1)],
            projection={"name": 1, "price": 1},
            skip=5,
            limit=5,
        )

    def test_range_and_exact_filters(self, client, tour_repo):
        response = client.get(
            "/api/v1/tours?difficulty=easy&duration[gte]=5&duration[lt]=10&price=497"
        )

        assert response.status_code == 200
        query_filter = tour_repo.find.await_args.args[0]
        assert query_filter == {
            "difficulty": "easy",
            "duration": {"$gte": 5, "$lt": 10},
            "price": 497,
        }

    def test_page_past_last_document_is_not_found(self, client, tour_repo):
        tour_repo.count.return_value = 5

        response = client.get("/api/v1/tours?page=2&limit=5")

        assert response.status_code == 404
        assert response.json() == {"status": "fail", "message": "This page does not exist"}
        tour_repo.find.assert_not_awaited()

    def test_empty_listing_without_page_is_not_found(self, client, tour_repo):
        tour_repo.count.return_value = 0

        response = client.get("/api/v1/tours?difficulty=easy")

        assert response.status_code == 404
        assert response.json() == {"status": "fail", "message": "This page does not exist"}
        tour_repo.count.assert_awaited_once_with({"difficulty": "easy"})
        tour_repo.find.assert_not_awaited()

    def test_duplicated_sort_field_is_rejected_with_index(self, client, tour_repo):
        response = client.get("/api/v1/tours?sort=price:asc,price:desc")

        assert response.status_code == 400
        assert response.json() == {
            "message": "Validation failed",
            "errors": [
                {
                    "in": "query",
                    "errors": [{"path": "sort.1", "message": 'Sort field "price" is duplicated'}],
                }
            ],
        }
        tour_repo.find.assert_not_awaited()

    def test_mixed_field_selection_is_rejected(self, client):
        response = client.get("/api/v1/tours?fields=name,-price")

        assert response.status_code == 400
        issues = response.json()["errors"][0]["errors"]
        assert issues == [{"path": "fields", "message": "Fields cannot mix include and exclude values"}]

    def test_unknown_query_key_is_rejected(self, client):
        response = client.get("/api/v1/tours?color=red")

        assert response.status_code == 400
        issues = response.json()["errors"][0]["errors"]
        assert issues[0]["path"] == "color"

    def test_inverted_range_is_rejected(self, client):
        response = client.get("/api/v1/tours?price[gte]=500&price[lt]=100")

        assert response.status_code == 400
        issues = response.json()["errors"][0]["errors"]
        assert issues == [
            {
                "path": "price",
                "message": "Price range is invalid (lower bound must be less than upper bound)",
            }
        ]

    def test_non_numeric_price_bound_reports_the_operator_path(self, client, tour_repo):
        response = client.get("/api/v1/tours?price[gte]=abc")

        assert response.status_code == 400
        assert response.json()["errors"] == [
            {
                "in": "query",
                "errors": [{"path": "price.gte", "message": "Input should be a valid number"}],
            }
        ]
        tour_repo.find.assert_not_awaited()


class TestListToursLogin:
    """GET /api/v1/tours needs a Bearer token; the query is validated first."""

    def test_missing_token_is_unauthorized(self, client, tour_repo):
        response = client.get("/api/v1/tours")

        assert response.status_code == 401
        assert response.json() == {
            "status": "fail",
            "message": "You are not logged in! Please log in to get access.",
        }
        tour_repo.count.assert_not_awaited()
        tour_repo.find.assert_not_awaited()

    def test_invalid_query_fails_before_login(self, client):
        response = client.get("/api/v1/tours?color=red")

        assert response.status_code == 400
        assert response.json()["message"] == "Validation failed"


class TestGetTour:
    """Tests for GET /api/v1/tours/{id}."""

    def test_found(self, client, tour_repo, tour_doc):
        tour_repo.find_by_id.return_value = tour_doc

        response = client.get(f"/api/v1/tours/{TOUR_ID}")

        assert response.status_code == 200
        assert response.json()["data"]["tour"]["name"] == "The Sea Explorer"
        tour_repo.find_by_id.assert_awaited_once_with(TOUR_ID)

    def test_missing_tour_returns_404(self, client):
        response = client.get(f"/api/v1/tours/{TOUR_ID}")

        assert response.status_code == 404
        assert response.json() == {"status": "fail", "message": "No tour found with that ID"}

    def test_malformed_id_is_rejected(self, client, tour_repo):
        response = client.get("/api/v1/tours/not-an-id")

        assert response.status_code == 400
        assert response.json()["errors"] == [
            {"in": "params", "errors": [{"path": "id", "message": "Invalid tourId"}]}
        ]
        tour_repo.find_by_id.assert_not_awaited()


class TestCreateTour:
    """Tests for POST /api/v1/tours."""

    @pytest.fixture
    def payload(self):
        return {
            "name": "The Forest Hiker",
            "duration": 5,
            "maxGroupSize": 25,
            "difficulty": "easy",
            "price": 397,
            "summary": "Breathtaking hike through the Canadian Banff National Park",
            "imageCover": "tour-1-cover.jpg",
            "startDates": ["2021-04-25,10:00", "2021-07-20"],
        }

    def test_create_returns_201(self, client, tour_repo, payload):
        async def insert(doc):
            return {**doc, "_id": ObjectId(TOUR_ID), "slug": "the-forest-hiker"}

        tour_repo.insert.side_effect = insert

        response = client.post("/api/v1/tours", json=payload)

        assert response.status_code == 201
        tour = response.json()["data"]["tour"]
        assert tour["id"] == TOUR_ID
        assert tour["ratingsAverage"] == 4.5

        stored = tour_repo.insert.await_args.args[0]
        assert stored["priceDiscount"] == 0
        assert stored["secretTour"] is False
        assert stored["startDates"][0] == datetime(2021, 4, 25, 10, 0, tzinfo=timezone.utc)

    def test_discount_not_below_price_is_rejected(self, client, tour_repo, payload):
        payload["priceDiscount"] = 397

        response = client.post("/api/v1/tours", json=payload)

        assert response.status_code == 400
        assert response.json()["errors"] == [
            {
                "in": "body",
                "errors": [
                    {
                        "path": "priceDiscount",
                        "message": "Discount price should be less than regular price",
                    }
                ],
            }
        ]
        tour_repo.insert.assert_not_awaited()

    def test_unknown_body_field_is_rejected(self, client, payload):
        payload["slug"] = "custom-slug"

        response = client.post("/api/v1/tours", json=payload)

        assert response.status_code == 400
        assert response.json()["errors"][0]["errors"][0]["path"] == "slug"

    def test_malformed_json_is_rejected(self, client):
        response = client.post(
            "/api/v1/tours",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["errors"] == [
            {"in": "body", "errors": [{"path": "", "message": "Body must be valid JSON"}]}
        ]

    def test_duplicate_name_uses_fail_envelope(self, client, tour_repo, payload):
        tour_repo.insert.side_effect = DuplicateKeyError(
            "E11000 duplicate key error", 11000, {"keyValue": {"name": "The Forest Hiker"}}
        )

        response = client.post("/api/v1/tours", json=payload)

        assert response.status_code == 400
        assert response.json() == {
            "status": "fail",
            "message": "Duplicate field value: The Forest Hiker. Please use another value!",
        }


class TestUpdateTour:
    """Tests for PATCH /api/v1/tours/{id}."""

    def test_requires_login(self, client):
        response = client.patch(f"/api/v1/tours/{TOUR_ID}", json={"price": 10})

        assert response.status_code == 401
        assert response.json()["status"] == "fail"

    def test_regular_user_is_forbidden(self, client, as_regular_user, tour_repo):
        response = client.patch(f"/api/v1/tours/{TOUR_ID}", json={"price": 10})

        assert response.status_code == 403
        assert response.json() == {
            "status": "fail",
            "message": "You do not have permission to perform this action",
        }
        tour_repo.update.assert_not_awaited()

    def test_merged_discount_above_price_is_rejected(self, client, as_admin, tour_repo, tour_doc):
        tour_repo.find_by_id.return_value = tour_doc

        response = client.patch(f"/api/v1/tours/{TOUR_ID}", json={"priceDiscount": 600})

        assert response.status_code == 400
        assert response.json() == {
            "message": "Validation failed",
            "errors": [
                {
                    "in": "body",
                    "errors": [
                        {
                            "path": "priceDiscount",
                            "message": "Discount price cannot be greater than regular price",
                        }
                    ],
                }
            ],
        }
        tour_repo.update.assert_not_awaited()

    def test_patch_applies_changes(self, client, as_admin, tour_repo, tour_doc):
        tour_repo.find_by_id.return_value = tour_doc
        tour_repo.update.return_value = {**tour_doc, "price": 550}

        response = client.patch(f"/api/v1/tours/{TOUR_ID}", json={"price": 550})

        assert response.status_code == 200
        assert response.json()["data"]["tour"]["price"] == 550
        tour_repo.update.assert_awaited_once_with(TOUR_ID, {"price": 550})

    def test_patch_missing_tour_returns_404(self, client, as_admin):
        response = client.patch(f"/api/v1/tours/{TOUR_ID}", json={"price": 550})

        assert response.status_code == 404
        assert response.json()["message"] == "No tour found with that ID"


class TestDeleteTour:
    """Tests for DELETE /api/v1/tours/{id}."""

    def test_delete_returns_204(self, client, as_admin, tour_repo):
        tour_repo.delete.return_value = True

        response = client.delete(f"/api/v1/tours/{TOUR_ID}")

        assert response.status_code == 204
        assert response.content == b""

    def test_delete_missing_tour_returns_404(self, client, as_admin):
        response = client.delete(f"/api/v1/tours/{TOUR_ID}")

        assert response.status_code == 404
        assert response.json() == {"status": "fail", "message": "No tour found with that ID"}


class TestReports:
    """Tests for /top-5, /stats and /monthly-plan/{year}."""

    def test_top_tours_alias(self, client, tour_repo):
        response = client.get("/api/v1/tours/top-5")

        assert response.status_code == 200
        tour_repo.find.assert_awaited_once_with(
            {},
            sort=[("ratingsAverage", -1), ("price", 1)],
            projection={"name": 1, "price": 1, "ratingsAverage": 1, "summary": 1, "difficulty": 1},
            skip=0,
            limit=5,
        )

    def test_top_tours_rejects_query_parameters(self, client):
        response = client.get("/api/v1/tours/top-5?limit=50")

        assert response.status_code == 400

    def test_stats(self, client, tour_repo):
        tour_repo.aggregate.return_value = [{"difficulty": "EASY", "numTours": 4}]

        response = client.get("/api/v1/tours/stats")

        assert response.status_code == 200
        assert response.json() == {
            "status": "success",
            "data": {"stats": [{"difficulty": "EASY", "numTours": 4}]},
        }

    def test_monthly_plan(self, client, tour_repo):
        tour_repo.aggregate.return_value = [{"month": 7, "numTourStarts": 3, "tours": ["A", "B", "C"]}]

        response = client.get("/api/v1/tours/monthly-plan/2021")

        assert response.status_code == 200
        assert response.json()["data"]["plan"][0]["month"] == 7
        pipeline = tour_repo.aggregate.await_args.args[0]
        assert pipeline[1]["$match"]["startDates"]["$gte"] == datetime(2021, 1, 1, tzinfo=timezone.utc)

    def test_monthly_plan_rejects_short_year(self, client):
        response = client.get("/api/v1/tours/monthly-plan/999")

        assert response.status_code == 400
        assert response.json()["errors"] == [
            {"in": "params", "errors": [{"path": "year", "message": "Year must be a valid 4-digit year"}]}
        ]


class TestErrorEnvelopes:
    """Cross-cutting error and header behaviour."""

    def test_unmatched_route(self, client):
        response = client.get("/api/v1/nowhere")

        assert response.status_code == 404
        assert response.json() == {
            "status": "fail",
            "message": "Can't find /api/v1/nowhere on this server!",
        }

    def test_unexpected_error_returns_500_envelope(self, client, tour_repo):
        tour_repo.find_by_id.side_effect = RuntimeError("connection reset")
        unsafe_client = TestClient(app, raise_server_exceptions=False)

        response = unsafe_client.get(f"/api/v1/tours/{TOUR_ID}")

        assert response.status_code == 500
        assert response.json() == {"status": "error", "message": "connection reset"}

    def test_security_and_rate_limit_headers(self, client):
        response = client.get("/api/v1/tours")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "SAMEORIGIN"
        assert "X-RateLimit-Limit" in response.headers
        assert "X-RateLimit-Remaining" in response.headers
