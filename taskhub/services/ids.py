"""Object id parsing helpers."""
from __future__ import annotations

from typing import Iterable

from beanie import PydanticObjectId

from taskhub.errors import ValidationError


def safe_object_id(value: str | None) -> PydanticObjectId | None:
    if not value:
        return None
    try:
        return PydanticObjectId(value)
    except Exception:
        return None


def parse_object_id(value: str | None, label: str) -> PydanticObjectId:
    """Parse ``value`` or raise a 400 naming the offending id."""
    oid = safe_object_id(value)
    if oid is None:
        raise ValidationError(f"Invalid {label} ID", fields=[f"{label}_id"])
    return oid


def object_ids(values: Iterable[str] | None) -> list[PydanticObjectId]:
    """Valid ids from ``values``, order kept, invalid entries dropped."""
    result: list[PydanticObjectId] = []
    for raw in values or []:
        oid = safe_object_id(raw)
        if oid:
            result.append(oid)
    return result


def unique_ids(values: Iterable[str] | None) -> list[str]:
    result: list[str] = []
    seen: set[str] = set()
    for raw in values or []:
        value = (raw or "").strip()
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result
