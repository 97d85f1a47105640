"""JSON codec for stored records.

Timestamps are written as ISO-8601 strings and parsed back into aware
``datetime`` values on load; a missing or null timestamp stays ``None``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Type, TypeVar

from pydantic import BaseModel

M = TypeVar("M", bound=BaseModel)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_field_names(model: Type[BaseModel], data: Mapping[str, Any]) -> Dict[str, Any]:
    """Rename camelCase keys in ``data`` to the model's attribute names."""
    by_alias = {info.alias or name: name for name, info in model.model_fields.items()}
    return {by_alias.get(key, key): value for key, value in data.items()}


def encode(record: BaseModel) -> Dict[str, Any]:
    return record.model_dump(mode="json", by_alias=True)


def decode(model: Type[M], raw: Mapping[str, Any]) -> M:
    return model.model_validate(raw)


def encode_many(records: Iterable[BaseModel]) -> List[Dict[str, Any]]:
    return [encode(record) for record in records]


def decode_many(model: Type[M], payload: Any) -> Dict[int, M]:
    """Rehydrate a JSON array of records keyed by identifier.

    Raises ``ValueError`` (pydantic's ``ValidationError`` included) when the
    payload is not a list of valid records.
    """
    if not isinstance(payload, list):
        raise ValueError(f"expected a JSON array, got {type(payload).__name__}")
    records: Dict[int, M] = {}
    for raw in payload:
        record = decode(model, raw)
        records[record.id] = record  # type: ignore[attr-defined]
    return records
