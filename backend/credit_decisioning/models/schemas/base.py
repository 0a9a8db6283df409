"""Shared pydantic base for engine schemas."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base schema whose wire encoding uses camelCase field names.

    Python code uses snake_case attributes; JSON/YAML documents and API
    bodies use camelCase (``dataType``, ``logicalOperator``). Both spellings
    are accepted on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )

    def to_wire(self) -> dict:
        """Dump to a JSON-compatible dict using camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
