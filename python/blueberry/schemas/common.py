"""Shared schema configuration.

Field names are snake_case in Python and camelCase on the wire.
Routes serialize with ``model_dump(mode="json", by_alias=True)``.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that accepts and emits camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
