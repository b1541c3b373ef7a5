from dataclasses import dataclass
from decimal import Decimal

from pydantic import BaseModel, field_validator

CSV_COLUMNS = ("name", "description", "price", "stockQuantity")

NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
PRICE_MAX_DECIMALS = 2
# bounds of the Numeric(10, 2) price and Integer stock columns
PRICE_UPPER_BOUND = Decimal("100000000")
STOCK_MIN = -(2**31)
STOCK_MAX = 2**31 - 1


@dataclass
class RawRecord:
    """One CSV row after type conversion, before any constraint is checked."""

    line_number: int
    name: str | None = None
    description: str | None = None
    price: Decimal | None = None
    stock_quantity: int | None = None


class ValidatedRecord(BaseModel):
    name: str
    description: str | None = None
    price: Decimal
    stock_quantity: int | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _check_name(cls, value):
        if value is None or not str(value).strip():
            raise ValueError("Product name is required")
        if len(value) > NAME_MAX_LENGTH:
            raise ValueError(f"Product name must be between 1 and {NAME_MAX_LENGTH} characters")
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _check_description(cls, value):
        if value is not None and len(value) > DESCRIPTION_MAX_LENGTH:
            raise ValueError(f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters")
        return value

    @field_validator("price", mode="before")
    @classmethod
    def _check_price(cls, value):
        if value is None:
            raise ValueError("Price is required")
        if value <= 0:
            raise ValueError("Price must be positive")
        if value >= PRICE_UPPER_BOUND:
            raise ValueError(f"Price must be less than {PRICE_UPPER_BOUND}")
        # trailing zeros do not count as decimal places
        if -value.normalize().as_tuple().exponent > PRICE_MAX_DECIMALS:
            raise ValueError(f"Price must have at most {PRICE_MAX_DECIMALS} decimal places")
        return value

    @field_validator("stock_quantity", mode="before")
    @classmethod
    def _check_stock(cls, value):
        if value is not None and not STOCK_MIN <= value <= STOCK_MAX:
            raise ValueError(f"Stock quantity must be between {STOCK_MIN} and {STOCK_MAX}")
        return value
