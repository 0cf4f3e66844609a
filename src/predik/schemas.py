"""Shared pydantic base for request and response bodies."""

from __future__ import annotations

import math

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serializes to camelCase keys and accepts either camelCase or snake_case input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Pagination(CamelModel):
    total: int
    page: int
    page_size: int
    pages: int

    @classmethod
    def build(cls, total: int, limit: int, offset: int) -> Pagination:
        return cls(total=total, page=offset // limit + 1, page_size=limit, pages=math.ceil(total / limit))
