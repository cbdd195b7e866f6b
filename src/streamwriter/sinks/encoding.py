"""
Record -> row encoding for the PostgreSQL sinks.

Accepted records: mappings, pydantic models, dataclass instances and JSON
text/bytes holding an object. Dict and list values are wrapped as jsonb.
"""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Mapping
from typing import Any, Iterable, Optional

from psycopg.types.json import Jsonb
from pydantic import BaseModel, ValidationError

from ..errors import RecordEncodingError
from ..schema import TableSchema


def records_of(data: Any) -> list[Any]:
    """Sink.put receives a list of records; a bare non-list record is accepted too.

    A list is always a batch, so a record that is itself a list has to be
    wrapped. The streamer workers always pass a list.
    """
    return list(data) if isinstance(data, list) else [data]


def to_mapping(record: Any) -> dict[str, Any]:
    if isinstance(record, BaseModel):
        return record.model_dump()
    if isinstance(record, Mapping):
        return dict(record)
    if dataclasses.is_dataclass(record) and not isinstance(record, type):
        return dataclasses.asdict(record)
    if isinstance(record, (str, bytes, bytearray)):
        try:
            obj = json.loads(record)
        except ValueError as exc:
            raise RecordEncodingError(f"record is not valid JSON: {exc}") from exc
        if not isinstance(obj, dict):
            raise RecordEncodingError(f"JSON record must be an object, got {type(obj).__name__}")
        return obj
    raise RecordEncodingError(f"cannot encode {type(record).__name__} as a table row")


class RowEncoder:
    """Turns records into column -> value dicts ready for psycopg.

    With a ``model`` every record is validated by it first. With a
    ``schema`` rows are projected onto its columns (missing values become
    NULL); unknown keys are dropped, or rejected when
    ``fail_for_unknown_values`` is set.
    """

    def __init__(
        self,
        schema: Optional[TableSchema] = None,
        *,
        model: Optional[type[BaseModel]] = None,
        fail_for_unknown_values: bool = False,
    ):
        self.schema = schema
        self._model = model
        self._strict = fail_for_unknown_values

    def encode(self, record: Any) -> dict[str, Any]:
        if self._model is not None:
            record = self._validate(record)
        row = to_mapping(record)

        if self.schema is not None:
            names = self.schema.names
            if self._strict:
                unknown = [k for k in row if k not in names]
                if unknown:
                    raise RecordEncodingError(f"unknown column(s) for schema: {unknown}")
            row = {name: row.get(name) for name in names}

        return {k: _adapt(v) for k, v in row.items()}

    def encode_many(self, records: Iterable[Any]) -> list[dict[str, Any]]:
        return [self.encode(r) for r in records]

    def _validate(self, record: Any) -> BaseModel:
        model = self._model
        if isinstance(record, model):
            return record
        try:
            if isinstance(record, (str, bytes, bytearray)):
                return model.model_validate_json(record)
            return model.model_validate(to_mapping(record))
        except ValidationError as exc:
            raise RecordEncodingError(
                f"record does not match {model.__name__}: {exc.error_count()} error(s)"
            ) from exc


def column_order(rows: Iterable[Mapping[str, Any]]) -> list[str]:
    """Union of row keys in first-seen order."""
    seen: dict[str, None] = {}
    for row in rows:
        for k in row:
            seen.setdefault(k, None)
    return list(seen)


def _adapt(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return Jsonb(value)
    return value
