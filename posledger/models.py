# posledger/models.py
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    # camelCase on the wire, snake_case in code; both accepted on input
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"


class SaleStatus(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Role(str, Enum):
    ADMIN = "admin"
    SELLER = "seller"


# Literals written by the first release of the frontend
LEGACY_PAYMENT_METHODS = {
    "efectivo": PaymentMethod.CASH,
    "tarjeta": PaymentMethod.CARD,
    "transferencia": PaymentMethod.TRANSFER,
}
LEGACY_STATUSES = {
    "completada": SaleStatus.COMPLETED,
    "cancelada": SaleStatus.CANCELLED,
}


class Product(CamelModel):
    id: str
    name: str
    category: str
    price: float
    stock: int
    description: Optional[str] = None
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("price")
    @classmethod
    def round_price_to_cents(cls, value: float) -> float:
        # line subtotals are rounded to the cent, so unit prices must be too
        return round(value, 2)


class SaleLineItem(CamelModel):
    """Priced snapshot of one basket line, detached from the live product."""

    product_id: str
    name: str
    quantity: int
    price: float
    subtotal: float


class Sale(CamelModel):
    id: str
    seller: str
    products: List[SaleLineItem]
    total: float
    payment_method: PaymentMethod
    status: SaleStatus = SaleStatus.COMPLETED
    created_at: datetime
    updated_at: datetime


class SellerRef(CamelModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None


class PopulatedSale(Sale):
    seller: SellerRef


class Alert(CamelModel):
    product_id: str
    name: str
    stock: int
    message: str


class User(CamelModel):
    id: str
    name: str
    email: str
    role: Role = Role.SELLER
    password_hash: str = Field(exclude=True)
    created_at: datetime
    updated_at: datetime


class Identity(BaseModel):
    """Verified caller as decoded from an access token."""

    id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
