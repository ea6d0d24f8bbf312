"""Shared response shapes."""

import math
from typing import Generic, List, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """One page of a zero-indexed paginated listing."""

    items: List[T]
    total: int
    page: int
    size: int
    total_pages: int

    @classmethod
    def build(cls, items: List[T], total: int, page: int, size: int) -> "Page[T]":
        return cls(
            items=items,
            total=total,
            page=page,
            size=size,
            total_pages=math.ceil(total / size) if size else 0,
        )


class MessageResponse(BaseModel):
    success: bool = True
    message: str
