"""Response envelopes shared by all routers."""

from __future__ import annotations

import math
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class PageMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> PageMeta:
        return cls(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit) if limit else 0)


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T


class PagedResponse(BaseModel, Generic[T]):
    success: bool = True
    data: list[T]
    meta: PageMeta
