from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, Field, field_validator

from inventory.schemas.common import CamelModel, Money


class ProductBase(CamelModel):
    """Base schema for Product with common attributes."""
    name: str = Field(..., min_length=1, max_length=200, description="Product name")
    description: Optional[str] = Field(None, max_length=500, description="Product description")
    category: str = Field(..., min_length=1, max_length=100, description="Product category")
    image_url: Optional[str] = Field(None, max_length=500, description="Product image URL")
    price: Money = Field(
        ..., gt=0, decimal_places=2, description="Product price (positive, at most 2 decimals)"
    )
    stock: int = Field(0, ge=0, description="Available stock (must be non-negative)")


class ProductCreate(ProductBase):
    """
    Schema for creating or fully replacing a product.

    String fields are trimmed before length checks; blank optional strings
    are stored as null.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("description", "image_url")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class ProductUpdate(ProductCreate):
    """Schema for updating an existing product. All mutable fields are replaced."""
    pass


class ProductResponse(ProductBase):
    """Schema for product response including all fields."""
    id: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
