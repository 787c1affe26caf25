"""
Product schemas.
"""

import json
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


def parse_specs(value: Any) -> Dict[str, str]:
    """Accept a mapping or a JSON-encoded mapping; values are kept as strings."""
    if value is None or value == "":
        return {}
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            raise ValueError("specs must be an object or a JSON-encoded object")
    if not isinstance(value, dict):
        raise ValueError("specs must be an object")
    return {str(k): str(v) for k, v in value.items()}


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="Unique product name")
    category: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    specs: Dict[str, str] = Field(default_factory=dict, description="Specification map")

    @field_validator("name", "category")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("specs", mode="before")
    @classmethod
    def coerce_specs(cls, v: Any) -> Dict[str, str]:
        return parse_specs(v)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    specs: Optional[Dict[str, str]] = None

    @field_validator("name", "category")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("specs", mode="before")
    @classmethod
    def coerce_specs(cls, v: Any) -> Optional[Dict[str, str]]:
        return None if v is None else parse_specs(v)


class ProductSummary(BaseModel):
    id: UUID
    name: str
    category: str

    model_config = {"from_attributes": True}


class ProductResponse(ProductSummary):
    description: Optional[str] = None
    image_url: Optional[str] = None
    specs: Dict[str, str] = Field(default_factory=dict)
    created_at: datetime
