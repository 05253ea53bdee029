"""Shared base model for serialized payloads."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class PayloadModel(BaseModel):
    """Base model serializing field names in camelCase for the rendering layer."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict:
        """Serialize to a JSON-compatible dictionary with camelCase keys."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
