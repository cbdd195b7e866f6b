"""
Table schema description shared by the sink configs and the row encoder.
"""

from __future__ import annotations

import types
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Union, get_args, get_origin
from uuid import UUID

from pydantic import BaseModel, field_validator

# Python annotation -> PostgreSQL type used for binary COPY
_PG_TYPES: dict[Any, str] = {
    bool: "bool",
    int: "int8",
    float: "float8",
    Decimal: "numeric",
    str: "text",
    bytes: "bytea",
    datetime: "timestamptz",
    date: "date",
    UUID: "uuid",
    dict: "jsonb",
    list: "jsonb",
}


class Column(BaseModel):
    name: str
    type: str = "text"


class TableSchema(BaseModel):
    """Ordered column list of a destination table.

    Columns may be given as ``Column`` objects, dicts or bare names
    (bare names default to ``text``).
    """

    columns: list[Column]

    @field_validator("columns", mode="before")
    @classmethod
    def _coerce_names(cls, v):
        return [{"name": c} if isinstance(c, str) else c for c in v]

    @field_validator("columns")
    @classmethod
    def _non_empty_unique(cls, v):
        if not v:
            raise ValueError("schema needs at least one column")
        names = [c.name for c in v]
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate column names in schema: {names}")
        return v

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def types(self) -> list[str]:
        return [c.type for c in self.columns]

    @classmethod
    def from_model(cls, model: type[BaseModel]) -> "TableSchema":
        """Derive a schema from a pydantic model's fields (declaration order)."""
        return cls(
            columns=[
                Column(name=name, type=_pg_type(field.annotation))
                for name, field in model.model_fields.items()
            ]
        )


def _pg_type(annotation: Any) -> str:
    # Optional[X] / X | None -> X
    if get_origin(annotation) is Union or isinstance(annotation, types.UnionType):
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            annotation = args[0]
    origin = get_origin(annotation) or annotation
    return _PG_TYPES.get(origin, "text")
