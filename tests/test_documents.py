"""
Tests for the document rules applied around repository reads and writes.
"""

from bson import ObjectId
import pytest

from tours_api.db.documents import (
    check_price_discount,
    default_projection,
    hide_secret,
    hide_secret_pipeline,
    serialize_document,
    to_object_id,
    with_slug,
)
from tours_api.errors import DocumentValidationError


class TestSlug:

    def test_slug_from_name(self):
        assert with_slug({"name": "The Northern Lights"})["slug"] == "the-northern-lights"

    def test_input_document_untouched(self):
        doc = {"name": "The Wine Taster"}
        with_slug(doc)
        assert "slug" not in doc


class TestSecretTours:

    def test_filter_gains_exclusion(self):
        assert hide_secret({"difficulty": "easy"}) == {
            "difficulty": "easy",
            "secretTour": {"$ne": True},
        }

    def test_empty_filter(self):
        assert hide_secret(None) == {"secretTour": {"$ne": True}}

    def test_explicit_secret_filter_is_combined(self):
        assert hide_secret({"secretTour": True}) == {
            "$and": [{"secretTour": True}, {"secretTour": {"$ne": True}}]
        }

    def test_pipeline_starts_with_exclusion(self):
        pipeline = [{"$match": {"ratingsAverage": {"$gte": 4.5}}}]
        assert hide_secret_pipeline(pipeline) == [
            {"$match": {"secretTour": {"$ne": True}}},
            {"$match": {"ratingsAverage": {"$gte": 4.5}}},
        ]


class TestPriceDiscount:

    @pytest.mark.parametrize("discount", [500, 501])
    def test_discount_not_below_price(self, discount):
        with pytest.raises(DocumentValidationError) as exc_info:
            check_price_discount({"price": 500, "priceDiscount": discount})
        assert exc_info.value.path == "priceDiscount"
        assert exc_info.value.message == f"Discount price ({discount}) should be below regular price"

    def test_valid_discount(self):
        check_price_discount({"price": 500, "priceDiscount": 499})
        check_price_discount({"price": 500})


class TestProjection:

    def test_hidden_fields_added_by_default(self):
        assert default_projection(None) == {"createdAt": 0}

    def test_exclusion_projection_also_hides(self):
        assert default_projection({"summary": 0}) == {"summary": 0, "createdAt": 0}

    def test_inclusion_projection_left_alone(self):
        assert default_projection({"name": 1, "createdAt": 1}) == {"name": 1, "createdAt": 1}


class TestSerialize:

    def test_id_and_derived_fields(self):
        oid = ObjectId()
        result = serialize_document({"_id": oid, "__v": 0, "name": "X", "duration": 14})
        assert result == {"id": str(oid), "name": "X", "duration": 14, "durationWeeks": 2}

    def test_private_user_fields_removed(self):
        result = serialize_document(
            {"_id": ObjectId(), "email": "a@b.io", "password": "hash", "passwordResetToken": "t"}
        )
        assert set(result) == {"id", "email"}

    def test_none(self):
        assert serialize_document(None) is None


class TestObjectId:

    def test_valid(self):
        assert to_object_id("5c88fa8cf4afda39709c2955") == ObjectId("5c88fa8cf4afda39709c2955")

    @pytest.mark.parametrize("value", ["nope", None, 42])
    def test_invalid(self, value):
        assert to_object_id(value) is None
