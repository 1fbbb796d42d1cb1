from decimal import Decimal
from math import ceil
from typing import Annotated, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, computed_field
from pydantic.alias_generators import to_camel

T = TypeVar("T")

# Decimal amounts are stored exactly but emitted as JSON numbers
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    """Base schema whose JSON field names are camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiResponse(CamelModel, Generic[T]):
    """Envelope returned by every endpoint of both services."""
    success: bool
    message: str = ""
    data: Optional[T] = None
    errors: list[str] = Field(default_factory=list)


class PagedResult(CamelModel, Generic[T]):
    """One page of a filtered, sorted listing."""
    data: list[T] = Field(default_factory=list)
    total_records: int
    page: int
    page_size: int

    @computed_field(alias="totalPages")
    @property
    def total_pages(self) -> int:
        return ceil(self.total_records / self.page_size) if self.page_size else 0

    @computed_field(alias="hasNextPage")
    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @computed_field(alias="hasPreviousPage")
    @property
    def has_previous_page(self) -> bool:
        return self.page > 1
