"""Shared schema base classes.

Learn: Internal code is snake_case, the wire format is camelCase (the
dashboard was written against that shape). CamelModel does the mapping
in one place: alias_generator for output, populate_by_name so records
and keyword arguments can still use Python names.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Envelope(BaseModel, Generic[T]):
    """Success envelope: {"success": true, "data": ...}."""

    success: bool = True
    data: T
