"""
Shared Pydantic building blocks.

API payloads are camelCase on the wire; Python code uses snake_case. Every
schema inherits the alias generator from CamelModel and accepts either form
on input.
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


class Location(CamelModel):
    lat: float
    lon: float


class LocationOut(Location):
    address: Optional[str] = None


class MediaItem(CamelModel):
    url: str
    key: str
    type: str  # image, video
    source_type: str = "UPLOADED"  # CAPTURED, UPLOADED


class Pagination(CamelModel):
    total: int
    limit: int
    offset: int
    has_more: bool = False
