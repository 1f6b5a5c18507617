"""
Edge API Pydantic Models

Request bodies accepted by the cart routes.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _whole_number(value: float) -> int:
    """JSON numbers like 2 or 2.0 are quantities; 1.5 is not."""
    if not value.is_integer():
        raise ValueError("Quantity must be a whole number")
    return int(value)


class ProductPayload(BaseModel):
    """
    Product as sent by the browser (catalog shape).

    Only id is required. An integer price is taken as minor units; a
    fractional one (catalog style, 9.99) is converted by Product.from_dict.
    """
    model_config = ConfigDict(extra="ignore")

    id: int = Field(strict=True)
    price: Optional[float] = Field(default=None, strict=True, ge=0, allow_inf_nan=False)
    title: Optional[str] = None
    stock: Optional[int] = None
    thumbnail: Optional[str] = None
    image: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    sku: Optional[str] = None


class AddToCartRequest(BaseModel):
    product: ProductPayload
    quantity: float = Field(strict=True, gt=0, allow_inf_nan=False)

    @field_validator("quantity")
    @classmethod
    def quantity_is_whole(cls, value: float) -> int:
        return _whole_number(value)


class UpdateCartLineRequest(BaseModel):
    quantity: float = Field(strict=True, ge=0, allow_inf_nan=False)  # 0 removes the line

    @field_validator("quantity")
    @classmethod
    def quantity_is_whole(cls, value: float) -> int:
        return _whole_number(value)


class ErrorDetail(BaseModel):
    message: str


class ErrorEnvelope(BaseModel):
    """Every error response: {"error": {"message": ...}}."""
    error: ErrorDetail
