"""Helpers for the loosely-shaped payloads the API returns."""

import logging
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import ApiError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def coerce_list(payload: Any, key: Optional[str] = None) -> list:
    """
    Pull a list out of a list endpoint response.

    Accepts a bare JSON array or an object wrapping one under ``key``
    (e.g. ``{"tasks": [...]}``). Anything else is logged and treated as
    an empty list.
    """
    if isinstance(payload, list):
        return payload
    if key and isinstance(payload, dict) and isinstance(payload.get(key), list):
        return payload[key]

    logger.warning(f"Unexpected list payload (key={key}): {payload!r:.200}")
    return []


def parse_items(model: type[M], items: list) -> list[M]:
    """Validate each item, skipping (and logging) the ones that don't fit."""
    parsed = []
    for item in items:
        try:
            parsed.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping malformed {model.__name__}: {e.error_count()} errors")
    return parsed


def parse_list(model: type[M], payload: Any, key: Optional[str] = None) -> list[M]:
    return parse_items(model, coerce_list(payload, key))


def parse_one(model: type[M], payload: Any) -> M:
    """
    Validate a single-record response.

    Raises:
        ApiError: the body doesn't look like a model record
    """
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        logger.error(f"Unexpected {model.__name__} payload: {payload!r:.200}")
        raise ApiError(f"Unexpected response from server ({model.__name__})", payload=payload) from e
