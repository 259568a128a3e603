"""
Shared schema base.

The dashboard and tracking SDK speak camelCase JSON; Python code uses
snake_case attributes. Every API model derives from CamelModel.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class DeleteResponse(CamelModel):
    success: bool = True
    id: Optional[str] = None
