"""Shared base model and envelope for API payloads."""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base model mapping snake_case attributes to camelCase JSON keys.

    Both spellings are accepted on input; responses are rendered by alias.
    """

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
    }


class OkResponse(ApiModel):
    ok: bool = True
