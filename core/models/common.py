"""Shared field types and paging models.

Money and percentage fields arrive from forms as strings, blanks, nulls or
numbers. They are cleaned here, at the boundary, so the billing functions
only ever see finite non-negative Decimals: anything missing, blank,
non-numeric, NaN, infinite or negative becomes 0. Percentages above 100 are
rejected rather than clamped.
"""

import math
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Generic, TypeVar

from pydantic import AfterValidator, BaseModel, BeforeValidator, Field, computed_field

T = TypeVar("T")

_ZERO = Decimal(0)


def coerce_amount(value: Any) -> Decimal:
    """Clean a money/quantity/percent input to a finite, non-negative Decimal."""
    if value is None or isinstance(value, bool):
        return _ZERO

    if isinstance(value, Decimal):
        amount = value
    else:
        text = str(value).strip()
        if not text:
            return _ZERO
        try:
            amount = Decimal(text)
        except (InvalidOperation, ValueError):
            return _ZERO

    if not amount.is_finite() or amount < 0:
        return _ZERO
    return amount


def coerce_optional_amount(value: Any) -> Decimal | None:
    """Like coerce_amount, but an explicit None means "not provided"."""
    if value is None:
        return None
    return coerce_amount(value)


def check_percent(value: Decimal | None) -> Decimal | None:
    if value is not None and value > 100:
        raise ValueError("Percentage must be between 0 and 100")
    return value


Amount = Annotated[Decimal, BeforeValidator(coerce_amount)]
Percent = Annotated[Decimal, BeforeValidator(coerce_amount), AfterValidator(check_percent)]
OptionalAmount = Annotated[Decimal | None, BeforeValidator(coerce_optional_amount)]
OptionalPercent = Annotated[
    Decimal | None, BeforeValidator(coerce_optional_amount), AfterValidator(check_percent)
]


class PageRequest(BaseModel):
    """Paging and sorting shared by every search."""

    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)
    sort_by: str | None = None
    sort_desc: bool = False

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class Page(BaseModel, Generic[T]):
    """One page of search results."""

    items: list[T]
    total: int
    page: int
    page_size: int

    @computed_field
    @property
    def total_pages(self) -> int:
        if self.total == 0:
            return 0
        return math.ceil(self.total / self.page_size)

    @computed_field
    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @computed_field
    @property
    def has_previous(self) -> bool:
        return self.page > 1
