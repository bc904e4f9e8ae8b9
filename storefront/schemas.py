from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Optional, Type, TypeVar

from fastapi import HTTPException, Request
from pydantic import BaseModel, Field, PlainSerializer, ValidationError
from pydantic import ConfigDict

M = TypeVar("M", bound=BaseModel)

# Decimals in and out of the store, plain JSON numbers on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
Price = Annotated[Money, Field(ge=0, max_digits=10, decimal_places=2)]
Total = Annotated[Money, Field(ge=0, max_digits=12, decimal_places=2)]


# ---- Categories ----

class CategoryIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)


class CategoryRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


# ---- Products ----

class ProductIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    price: Price
    category_id: Optional[int] = Field(default=None, ge=1)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[Price] = None
    category_id: Optional[int] = Field(default=None, ge=1)


class ProductRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    price: Money
    category_id: Optional[int] = None


class ProductOut(ProductRef):
    created_at: datetime
    updated_at: datetime
    category: Optional[CategoryRef] = None


class CategoryOut(CategoryRef):
    created_at: datetime
    updated_at: datetime
    products: List[ProductRef] = []


# ---- Orders ----

class OrderItemIn(BaseModel):
    product_id: int = Field(ge=1)
    quantity: int = Field(ge=1)
    # Snapshot of the product's price when omitted
    unit_price: Optional[Price] = None


class OrderCreate(BaseModel):
    user_id: int
    status: str = Field(default="pending", min_length=1, max_length=50)
    total: Optional[Total] = None
    items: List[OrderItemIn] = Field(min_length=1)


class OrderUpdate(BaseModel):
    user_id: Optional[int] = None
    status: Optional[str] = Field(default=None, min_length=1, max_length=50)
    total: Optional[Total] = None


class OrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    product_id: int
    quantity: int
    unit_price: Money


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    status: str
    total: Money
    placed_at: datetime
    items: List[OrderItemOut]


class Message(BaseModel):
    message: str


async def raw_body(request: Request) -> bytes:
    """FastAPI dependency: the unparsed request body, for handlers that look up before binding."""
    return await request.body()


def parse_body(model: Type[M], raw: bytes) -> M:
    """Validate a JSON body against ``model``; any failure is a 400."""
    try:
        return model.model_validate_json(raw)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid input")


def bind_update(record, payload: BaseModel, nullable=()) -> dict:
    """
    Copy the fields present in the request body onto an existing record.
    Omitted fields keep their stored values; an explicit null only clears
    columns listed in ``nullable``.
    """
    changes = {
        k: v for k, v in payload.model_dump(exclude_unset=True).items()
        if v is not None or k in nullable
    }
    for field, value in changes.items():
        setattr(record, field, value)
    return changes
