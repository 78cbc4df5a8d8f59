"""Base model for records that cross the wire in camelCase."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Model accepting snake_case or camelCase input and dumping camelCase by alias."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
