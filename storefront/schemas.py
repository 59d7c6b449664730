from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, TypeAdapter

# Postgres INTEGER
MAX_INT = 2**31 - 1

# Decimal in Python, plain JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    price: Money
    stock: int
    image_url: Optional[str] = None
    created_at: datetime


ProductList = TypeAdapter(List[ProductOut])


class OrderItemIn(BaseModel):
    product_id: int = Field(ge=1, le=MAX_INT)
    quantity: int = Field(ge=1, le=MAX_INT)


class OrderCreate(BaseModel):
    user_id: int = Field(ge=-MAX_INT - 1, le=MAX_INT)
    items: List[OrderItemIn] = Field(min_length=1)


class OrderPlaced(BaseModel):
    order_id: int = Field(serialization_alias="orderId")
    total: Money
