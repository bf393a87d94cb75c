"""
Pydantic schemas for tour request validation.

Covers the path params (tour id, monthly plan year), the listing query
string (pagination, sort, field selection, range filters) and the create /
patch bodies. All schemas are strict: unknown keys are rejected, which keeps
_id, slug and other server-owned fields out of writes.
"""

import math
from datetime import datetime, timezone
from typing import Annotated, Any, ClassVar, List, Literal, Optional, Tuple, Union

from bson import ObjectId
from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    HttpUrl,
    TypeAdapter,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic_core import PydanticCustomError


def _parse_number(value: Any) -> Union[int, float]:
    """"5" -> 5, "397.5" -> 397.5; anything else is one error on the field itself."""
    if isinstance(value, str):
        text = value.strip()
        try:
            value = int(text)
        except ValueError:
            try:
                value = float(text)
            except ValueError:
                raise ValueError("Input should be a valid number") from None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("Input should be a valid number")
    if not math.isfinite(value):
        raise ValueError("Input should be a finite number")
    return value


Difficulty = Literal["easy", "medium", "difficult"]
Number = Annotated[Union[int, float], BeforeValidator(_parse_number)]

SORT_FIELDS = ("price", "ratingsAverage", "duration")
SORT_DIRECTIONS = ("asc", "desc")

SELECT_FIELDS = (
    "name",
    "duration",
    "maxGroupSize",
    "difficulty",
    "ratingsAverage",
    "ratingsQuantity",
    "price",
    "priceDiscount",
    "summary",
    "description",
    "imageCover",
    "images",
    "createdAt",
    "startDates",
)
FORBIDDEN_SELECT_FIELDS = ("_id", "__v")

RANGE_OPERATORS = ("gt", "gte", "lt", "lte")


# --- Shared field helpers ---

def positive(message: str = "Number must be greater than 0"):
    def check(value):
        if value <= 0:
            raise ValueError(message)
        return value
    return AfterValidator(check)


def non_negative(message: str = "Number must be greater than or equal to 0"):
    def check(value):
        if value < 0:
            raise ValueError(message)
        return value
    return AfterValidator(check)


def between(low: float, high: float, message: Optional[str] = None):
    def check(value):
        if value < low or value > high:
            raise ValueError(message or f"Number must be between {low} and {high}")
        return value
    return AfterValidator(check)


def non_empty(message: str):
    def check(value: str) -> str:
        if not value:
            raise ValueError(message)
        return value
    return AfterValidator(check)


def object_id(label: str):
    def check(value: str) -> str:
        value = value.strip()
        if not ObjectId.is_valid(value):
            raise ValueError(f"Invalid {label}")
        return value
    return AfterValidator(check)


def _coerce_date(value: Any) -> Any:
    """Accept ISO strings ("2021-04-25", "2021-04-25,10:00") and epoch milliseconds."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace(",", "T", 1))
        except ValueError:
            return value
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return value


DateValue = Annotated[datetime, BeforeValidator(_coerce_date)]


# --- Params ---

class TourIdParams(BaseModel):
    """Path params for /tours/{id}."""
    id: Annotated[str, object_id("tourId")]


class MonthlyPlanParams(BaseModel):
    """Path params for /tours/monthly-plan/{year}."""
    model_config = ConfigDict(extra="forbid")

    year: Annotated[int, between(1000, 9999, "Year must be a valid 4-digit year")]


class EmptyQuery(BaseModel):
    """Query schema for routes that accept no query parameters."""
    model_config = ConfigDict(extra="forbid")


# --- Bodies ---

class TourCreateBody(BaseModel):
    """
    Request body for POST /tours.

    Defaults match the stored document defaults (ratingsAverage 4.5,
    ratingsQuantity 0, priceDiscount 0, empty images / startDates,
    secretTour false).
    """
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, allow_inf_nan=False)

    name: Annotated[str, non_empty("A tour must have a name")]
    duration: Annotated[Number, positive("A tour must have a duration")]
    maxGroupSize: Annotated[int, positive("A tour must have a group size")]
    difficulty: Difficulty
    ratingsAverage: Annotated[Number, between(0, 5)] = 4.5
    ratingsQuantity: Annotated[int, non_negative()] = 0
    price: Annotated[Number, positive("A tour must have a price")]
    priceDiscount: Annotated[Number, non_negative()] = 0
    summary: Annotated[str, non_empty("A tour must have a summary")]
    description: Optional[str] = None
    imageCover: Annotated[str, non_empty("A tour must have a cover image")]
    images: List[str] = Field(default_factory=list)
    createdAt: Optional[DateValue] = None
    startDates: List[DateValue] = Field(default_factory=list)
    secretTour: bool = False

    @field_validator("priceDiscount")
    @classmethod
    def discount_below_price(cls, value: Number, info: ValidationInfo) -> Number:
        """priceDiscount must be strictly less than price."""
        price = info.data.get("price")
        if price is not None and value >= price:
            raise ValueError("Discount price should be less than regular price")
        return value


class TourPatchBody(BaseModel):
    """
    Request body for PATCH /tours/{id}.

    All fields optional. When price and priceDiscount are both sent the
    discount may not exceed the price; the merged document is checked again
    by the service before it is stored.
    """
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, allow_inf_nan=False)

    name: Optional[Annotated[str, Field(min_length=1, max_length=100)]] = None
    duration: Optional[Annotated[int, positive()]] = None
    maxGroupSize: Optional[Annotated[int, positive()]] = None
    difficulty: Optional[Difficulty] = None

    price: Optional[Annotated[Number, non_negative()]] = None
    priceDiscount: Optional[Annotated[Number, non_negative()]] = None

    summary: Optional[Annotated[str, Field(min_length=1, max_length=500)]] = None
    description: Optional[Annotated[str, Field(min_length=1, max_length=5000)]] = None

    imageCover: Optional[HttpUrl] = None
    images: Optional[List[HttpUrl]] = None

    startDates: Optional[List[DateValue]] = None

    @field_validator("priceDiscount")
    @classmethod
    def discount_not_above_price(cls, value: Optional[Number], info: ValidationInfo) -> Optional[Number]:
        price = info.data.get("price")
        if value is not None and price is not None and value > price:
            raise ValueError("Discount price cannot be greater than regular price")
        return value

    def changes(self) -> dict:
        """Fields actually sent by the client, URLs as plain strings."""
        data = {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }
        if "imageCover" in data:
            data["imageCover"] = str(self.imageCover)
        if "images" in data:
            data["images"] = [str(url) for url in self.images]
        return data


# --- Query: sort ---

def _split_comma_list(label: str, value: Any) -> List[str]:
    if not isinstance(value, str):
        raise PydanticCustomError(
            "single_parameter", "{label} must be a single query parameter", {"label": label}
        )
    value = value.strip()
    if not value:
        raise PydanticCustomError(
            "empty_parameter", "{label} must be a non-empty string", {"label": label}
        )
    return [part.strip() for part in value.split(",")]


def _comma_list(label: str):
    return BeforeValidator(lambda value: _split_comma_list(label, value))


def _sort_items(value: Any) -> List[Tuple[str, bool]]:
    """Split the sort string, flagging each token whose field appeared earlier."""
    seen = set()
    items = []
    for token in _split_comma_list("Sort", value):
        name = token.split(":")[0]
        items.append((token, bool(name) and name in seen))
        seen.add(name)
    return items


def _sort_token(item: Tuple[str, bool]) -> str:
    token, duplicate = item
    if not token:
        raise ValueError("Sort must not contain empty fields")

    parts = token.split(":")
    if len(parts) != 2:
        raise ValueError("Sort must use field:direction format")

    name, direction = parts
    if name not in SORT_FIELDS:
        raise ValueError(f"Sort fields must be one of: {', '.join(SORT_FIELDS)}")
    if direction.lower() not in SORT_DIRECTIONS:
        raise ValueError(f"Sort direction must be one of: {', '.join(SORT_DIRECTIONS)}")
    if duplicate:
        raise PydanticCustomError(
            "duplicate_field", 'Sort field "{name}" is duplicated', {"name": name}
        )

    return f"-{name}" if direction.lower() == "desc" else name


SortToken = Annotated[Tuple[str, bool], AfterValidator(_sort_token)]
SortParam = Annotated[List[SortToken], BeforeValidator(_sort_items)]


# --- Query: field selection ---

def _field_token(token: str) -> str:
    name = token[1:] if token.startswith("-") else token
    if not name:
        raise ValueError("Fields must not contain empty values")
    if name in FORBIDDEN_SELECT_FIELDS:
        raise ValueError(f'Field "{name}" cannot be requested')
    if name not in SELECT_FIELDS:
        raise ValueError(f"Fields must be one of: {', '.join(SELECT_FIELDS)}")
    return token


def _projection_string(tokens: List[str]) -> str:
    seen = set()
    for index, token in enumerate(tokens):
        name = token.lstrip("-")
        if name in seen:
            raise PydanticCustomError(
                "duplicate_field",
                'Field "{name}" is duplicated',
                {"name": name, "index": index},
            )
        seen.add(name)

    excludes = [token.startswith("-") for token in tokens]
    if any(excludes) and not all(excludes):
        raise PydanticCustomError(
            "mixed_projection", "Fields cannot mix include and exclude values"
        )
    return " ".join(tokens)


FieldToken = Annotated[str, AfterValidator(_field_token)]
FieldsParam = Annotated[List[FieldToken], _comma_list("Fields"), AfterValidator(_projection_string)]


# --- Query: range filters ---

QueryPositiveInt = Annotated[int, positive()]
QueryPositiveNumber = Annotated[Number, positive()]


class RangeFilter(BaseModel):
    """
    Comparison filter on a numeric field.

    Accepts a bare value (exact match, stored in `exact`) or an object using
    any of gt / gte / lt / lte. With both a lower and an upper bound, the
    lower must be below the upper; equality is allowed only when both bounds
    are inclusive.
    """
    model_config = ConfigDict(extra="forbid")

    label: ClassVar[str] = "Range"
    scalar: ClassVar[TypeAdapter]

    exact: Optional[Number] = None

    @model_validator(mode="before")
    @classmethod
    def wrap_scalar(cls, data: Any) -> Any:
        if isinstance(data, dict):
            if "exact" in data:
                raise ValueError(
                    f"{cls.label} range operators must be one of: {', '.join(RANGE_OPERATORS)}"
                )
            return {key: value for key, value in data.items() if value != ""}
        try:
            return {"exact": cls.scalar.validate_python(data)}
        except ValidationError as e:
            error = e.errors()[0]
            ctx = error.get("ctx") or {}
            raise ValueError(str(ctx.get("error", error["msg"])))

    @model_validator(mode="after")
    def check_bounds(self) -> "RangeFilter":
        if self.exact is not None:
            return self

        values = {op: getattr(self, op) for op in RANGE_OPERATORS}
        if all(value is None for value in values.values()):
            raise ValueError(f"{self.label} range must include at least one operator")

        if values["gt"] is not None:
            lower, lower_inclusive = values["gt"], False
        else:
            lower, lower_inclusive = values["gte"], True
        if values["lt"] is not None:
            upper, upper_inclusive = values["lt"], False
        else:
            upper, upper_inclusive = values["lte"], True

        if lower is None or upper is None:
            return self

        invalid = lower > upper if (lower_inclusive and upper_inclusive) else lower >= upper
        if invalid:
            raise ValueError(
                f"{self.label} range is invalid (lower bound must be less than upper bound)"
            )
        return self

    def operators(self) -> dict:
        """Operators that were supplied, e.g. {"gte": 5, "lt": 10}."""
        return {op: getattr(self, op) for op in RANGE_OPERATORS if getattr(self, op) is not None}


class DurationRange(RangeFilter):
    label: ClassVar[str] = "Duration"
    scalar: ClassVar[TypeAdapter] = TypeAdapter(QueryPositiveInt)

    gt: Optional[QueryPositiveInt] = None
    gte: Optional[QueryPositiveInt] = None
    lt: Optional[QueryPositiveInt] = None
    lte: Optional[QueryPositiveInt] = None


class PriceRange(RangeFilter):
    label: ClassVar[str] = "Price"
    scalar: ClassVar[TypeAdapter] = TypeAdapter(QueryPositiveNumber)

    gt: Optional[QueryPositiveNumber] = None
    gte: Optional[QueryPositiveNumber] = None
    lt: Optional[QueryPositiveNumber] = None
    lte: Optional[QueryPositiveNumber] = None


class TourListQuery(BaseModel):
    """
    Query string for GET /tours.

    Example:
        ?sort=price:desc,ratingsAverage:asc&fields=name,price&page=2&limit=5
        -> sort=["-price", "ratingsAverage"], fields="name price", page=2, limit=5
    """
    model_config = ConfigDict(extra="forbid")

    page: Optional[QueryPositiveInt] = None
    limit: Optional[QueryPositiveInt] = None
    sort: Optional[SortParam] = None
    fields: Optional[FieldsParam] = None
    difficulty: Optional[Difficulty] = None
    duration: Optional[DurationRange] = None
    price: Optional[PriceRange] = None

    @model_validator(mode="before")
    @classmethod
    def drop_empty_numbers(cls, data: Any) -> Any:
        """Empty numeric parameters (?page=) count as absent."""
        if isinstance(data, dict):
            return {
                key: value
                for key, value in data.items()
                if not (key in ("page", "limit", "duration", "price") and value == "")
            }
        return data
