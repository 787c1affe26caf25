"""
Shared response envelopes.
Every successful response is ``{"success": true, "data": ...}``.
"""

from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Single-object response."""

    success: bool = Field(default=True, description="Always true for 2xx responses")
    data: T


class ListEnvelope(BaseModel, Generic[T]):
    """List response with the number of items returned."""

    success: bool = True
    count: int = Field(..., description="Number of items in data")
    data: List[T]


class PagedEnvelope(ListEnvelope[T], Generic[T]):
    """List response with pagination info."""

    total: Optional[int] = Field(None, description="Total number of matching items")
    pagination: Dict[str, Any] = Field(default_factory=dict)


class MessageResponse(BaseModel):
    success: bool = True
    message: str


def page_count(total: int, limit: int) -> int:
    return (total + limit - 1) // limit if limit else 0
