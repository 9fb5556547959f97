"""
Field value helpers.

A field in a proposed write is either supplied by the client or assigned by the
server at commit time (Firestore's ``SERVER_TIMESTAMP`` sentinel). Rules never
compare a server-assigned value literally.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from google.cloud.firestore_v1 import SERVER_TIMESTAMP


class FieldSource(str, Enum):
    CLIENT_SUPPLIED = "client_supplied"
    SERVER_ASSIGNED = "server_assigned"


def field_source(value: Any) -> FieldSource:
    if value is SERVER_TIMESTAMP:
        return FieldSource.SERVER_ASSIGNED
    return FieldSource.CLIENT_SUPPLIED


def is_server_assigned(value: Any) -> bool:
    return field_source(value) is FieldSource.SERVER_ASSIGNED


def with_server_timestamps(data: Mapping[str, Any], fields: Iterable[str]) -> dict[str, Any]:
    """Copy ``data`` with each named field set to the server timestamp marker."""
    result = dict(data)
    for name in fields:
        result[name] = SERVER_TIMESTAMP
    return result


def resolve_server_values(
    data: Mapping[str, Any],
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Replace server-assigned markers with a concrete timestamp, at any depth."""
    now = now or datetime.now(timezone.utc)
    return {key: _resolve_value(value, now) for key, value in data.items()}


def _resolve_value(value: Any, now: datetime) -> Any:
    if is_server_assigned(value):
        return now
    if isinstance(value, Mapping):
        return {key: _resolve_value(item, now) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_resolve_value(item, now) for item in value]
    return value


def to_jsonable(data: Mapping[str, Any]) -> dict[str, Any]:
    """Render stored values for an HTTP response."""
    return {key: _jsonable_value(value) for key, value in data.items()}


def _jsonable_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Mapping):
        return to_jsonable(value)
    if isinstance(value, (list, tuple)):
        return [_jsonable_value(item) for item in value]
    return value
