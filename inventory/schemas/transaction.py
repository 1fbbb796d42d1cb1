from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, Field, field_validator

from inventory.models.transaction import TransactionType
from inventory.schemas.common import CamelModel, Money


class TransactionCreate(CamelModel):
    """Schema for recording a purchase or a sale. Details are trimmed before length checks."""
    model_config = ConfigDict(str_strip_whitespace=True)

    transaction_type: TransactionType = Field(..., description="Purchase or Sale")
    product_id: int = Field(..., description="ID of the product whose stock moves")
    quantity: int = Field(..., ge=1, description="Units moved (must be positive)")
    unit_price: Money = Field(
        ..., gt=0, decimal_places=2, description="Price per unit (positive, at most 2 decimals)"
    )
    details: Optional[str] = Field(None, max_length=500, description="Free-text notes")

    @field_validator("details")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class TransactionUpdate(TransactionCreate):
    """Schema for editing a transaction. Same shape as creation."""
    pass


class TransactionResponse(CamelModel):
    """Schema for transaction response."""
    id: int
    transaction_date: datetime
    transaction_type: TransactionType
    product_id: int
    product_name: str
    quantity: int
    unit_price: Money
    total_price: Money
    details: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
