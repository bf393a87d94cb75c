"""
Request validation: path params, query string and body, each checked
independently against its own pydantic schema.

`validate_parts` is framework-free: it takes plain data and returns a
ValidatedRequest or raises RequestValidationFailed with every failing
surface listed. `validate_request` wraps it as a FastAPI dependency.

Error envelope (HTTP 400):

    {
        "message": "Validation failed",
        "errors": [
            {"in": "query", "errors": [{"path": "sort.1", "message": "..."}]}
        ]
    }
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type

from fastapi import Request
from pydantic import BaseModel, ValidationError

from tours_api.errors import RequestValidationFailed
from tours_api.utils.logging import get_logger

logger = get_logger(__name__)

PARTS = ("params", "query", "body")

_BRACKET_KEY = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])*)$")


@dataclass
class ValidatedRequest:
    """Normalized, type-coerced request data for downstream handlers."""
    params: Optional[BaseModel] = None
    query: Optional[BaseModel] = None
    body: Optional[BaseModel] = None


def format_validation_errors(errors: Iterable[Mapping[str, Any]]) -> List[Dict[str, str]]:
    """
    Convert pydantic error dicts into {path, message} issues.

    The path is the error location joined by "."; custom errors may carry an
    `index` in their context which is appended (e.g. "sort.1").
    """
    issues = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ())]
        ctx = error.get("ctx") or {}
        if "index" in ctx:
            loc.append(str(ctx["index"]))

        if error.get("type") == "value_error" and "error" in ctx:
            message = str(ctx["error"])
        else:
            message = str(error.get("msg", "Invalid value"))

        issues.append({"path": ".".join(loc), "message": message})
    return issues


def parse_query_string(items: Iterable[Tuple[str, str]]) -> Dict[str, Any]:
    """
    Build nested query data from raw key/value pairs.

    Bracket keys become nested dicts and repeated keys become lists:

        >>> parse_query_string([("price[gte]", "5"), ("sort", "price:asc")])
        {'price': {'gte': '5'}, 'sort': 'price:asc'}
        >>> parse_query_string([("sort", "a"), ("sort", "b")])
        {'sort': ['a', 'b']}
    """
    result: Dict[str, Any] = {}
    for raw_key, value in items:
        match = _BRACKET_KEY.match(raw_key)
        if not match:
            _assign(result, [raw_key], value)
            continue
        head, brackets = match.groups()
        keys = [head] + re.findall(r"\[([^\[\]]*)\]", brackets)
        _assign(result, keys, value)
    return result


def _assign(target: Dict[str, Any], keys: List[str], value: Any) -> None:
    key = keys[0]
    if len(keys) == 1 or (len(keys) == 2 and keys[1] == ""):
        if keys[-1] == "" and key not in target:
            target[key] = [value]
        elif key not in target:
            target[key] = value
        elif isinstance(target[key], list):
            target[key].append(value)
        else:
            target[key] = [target[key], value]
        return

    child = target.get(key)
    if not isinstance(child, dict):
        child = {} if child is None else {"": child}
        target[key] = child
    _assign(child, keys[1:], value)


def validate_parts(
    schemas: Mapping[str, Type[BaseModel]],
    params: Any = None,
    query: Any = None,
    body: Any = None,
) -> ValidatedRequest:
    """
    Validate each request surface that has a schema.

    Args:
        schemas: Mapping of "params" / "query" / "body" to a pydantic model
        params: Path parameters
        query: Parsed query string (see parse_query_string)
        body: Decoded JSON body

    Returns:
        ValidatedRequest holding the parsed models

    Raises:
        RequestValidationFailed: With one entry per failing surface
    """
    raw = {"params": params, "query": query, "body": body}
    validated: Dict[str, BaseModel] = {}
    errors = []

    for part in PARTS:
        schema = schemas.get(part)
        if schema is None:
            continue
        data = raw[part]
        if data is None and part != "body":
            data = {}
        try:
            validated[part] = schema.model_validate(data)
        except ValidationError as e:
            errors.append({"in": part, "errors": format_validation_errors(e.errors())})

    if errors:
        raise RequestValidationFailed(errors)

    return ValidatedRequest(**validated)


async def _read_json_body(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        raise RequestValidationFailed.single("body", "", "Body must be valid JSON")


def validate_request(
    params: Optional[Type[BaseModel]] = None,
    query: Optional[Type[BaseModel]] = None,
    body: Optional[Type[BaseModel]] = None,
):
    """
    Build a FastAPI dependency validating the given request surfaces.

    The ValidatedRequest is returned to the handler and also stored on
    request.state.validated.

    Usage:
        >>> @router.get("")
        >>> async def list_tours(
        >>>     validated: ValidatedRequest = Depends(validate_request(query=TourListQuery)),
        >>> ): ...
    """
    schemas = {"params": params, "query": query, "body": body}
    schemas = {part: schema for part, schema in schemas.items() if schema is not None}

    async def dependency(request: Request) -> ValidatedRequest:
        raw_body = await _read_json_body(request) if "body" in schemas else None
        validated = validate_parts(
            schemas,
            params=dict(request.path_params),
            query=parse_query_string(request.query_params.multi_items()),
            body=raw_body,
        )
        request.state.validated = validated
        logger.debug(f"Validated {', '.join(schemas)} for {request.method} {request.url.path}")
        return validated

    return dependency
