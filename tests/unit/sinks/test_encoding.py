"""
Unit tests for record -> row encoding.
"""

from dataclasses import dataclass
from typing import Optional

import pytest
from psycopg.types.json import Jsonb
from pydantic import BaseModel

from streamwriter.errors import RecordEncodingError
from streamwriter.schema import TableSchema
from streamwriter.sinks.encoding import RowEncoder, column_order, records_of, to_mapping


class Event(BaseModel):
    id: int
    name: str
    note: Optional[str] = None


@dataclass
class Point:
    x: int
    y: int


def test_records_of():
    assert records_of({"a": 1}) == [{"a": 1}]
    assert records_of([{"a": 1}, {"a": 2}]) == [{"a": 1}, {"a": 2}]
    assert records_of("raw") == ["raw"]


@pytest.mark.parametrize(
    "record,expected",
    [
        ({"id": 1}, {"id": 1}),
        (Event(id=1, name="a"), {"id": 1, "name": "a", "note": None}),
        (Point(1, 2), {"x": 1, "y": 2}),
        ('{"id": 1}', {"id": 1}),
        (b'{"id": 2}', {"id": 2}),
    ],
)
def test_to_mapping(record, expected):
    assert to_mapping(record) == expected


@pytest.mark.parametrize("record", ["not json", "[1, 2]", 42, object()])
def test_to_mapping_rejects(record):
    with pytest.raises(RecordEncodingError):
        to_mapping(record)


def test_encoding_error_is_not_retryable():
    from streamwriter.coordinator import default_retry_classifier

    with pytest.raises(RecordEncodingError) as ei:
        to_mapping(42)
    assert not default_retry_classifier(ei.value)


def test_encode_without_schema_keeps_keys():
    row = RowEncoder().encode({"id": 1, "payload": {"k": "v"}, "tags": ["a"]})
    assert row["id"] == 1
    assert isinstance(row["payload"], Jsonb)
    assert row["payload"].obj == {"k": "v"}
    assert row["tags"].obj == ["a"]


def test_encode_projects_onto_schema():
    enc = RowEncoder(TableSchema(columns=["id", "name"]))
    assert enc.encode({"name": "a", "extra": True}) == {"id": None, "name": "a"}


def test_encode_strict_rejects_unknown_columns():
    enc = RowEncoder(TableSchema(columns=["id"]), fail_for_unknown_values=True)
    assert enc.encode({"id": 1}) == {"id": 1}
    with pytest.raises(RecordEncodingError, match="extra"):
        enc.encode({"id": 1, "extra": True})


def test_encode_validates_through_model():
    enc = RowEncoder(TableSchema.from_model(Event), model=Event)
    assert enc.encode({"id": "7", "name": "x"}) == {"id": 7, "name": "x", "note": None}
    assert enc.encode('{"id": 8, "name": "y"}') == {"id": 8, "name": "y", "note": None}
    with pytest.raises(RecordEncodingError, match="Event"):
        enc.encode({"name": "missing id"})
    with pytest.raises(RecordEncodingError):
        enc.encode('{"id": "nope", "name": "y"}')


def test_column_order_first_seen():
    assert column_order([{"a": 1, "b": 2}, {"c": 3, "a": 4}]) == ["a", "b", "c"]
