"""
Shared API Schemas
==================

Base model for request/response DTOs.

The REST API speaks camelCase JSON (`reporterName`, `isInternal`); Python
code keeps snake_case attributes. Both spellings are accepted on input.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Pydantic model serialized with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True
    )


class MessageResponse(CamelModel):
    """Plain acknowledgement body."""
    message: str
