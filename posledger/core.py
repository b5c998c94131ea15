# posledger/core.py
import re
from datetime import datetime
from typing import Annotated, Any, List, Optional

from pydantic import AfterValidator, BeforeValidator, Field, HttpUrl

from .errors import ValidationError
from .models import (
    LEGACY_PAYMENT_METHODS, LEGACY_STATUSES, CamelModel, PaymentMethod,
    Product, Role, SaleStatus,
)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


# ---------------------------
# Helpers
# ---------------------------
def money(value: float) -> float:
    return round(value, 2)


def normalize_payment_method(value: Any) -> PaymentMethod:
    if isinstance(value, PaymentMethod):
        return value
    raw = str(value).strip().lower()
    if raw in LEGACY_PAYMENT_METHODS:
        return LEGACY_PAYMENT_METHODS[raw]
    try:
        return PaymentMethod(raw)
    except ValueError:
        raise ValidationError("Invalid payment method", detail={"paymentMethod": value})


def normalize_status(value: Any) -> SaleStatus:
    if isinstance(value, SaleStatus):
        return value
    raw = str(value).strip().lower()
    if raw in LEGACY_STATUSES:
        return LEGACY_STATUSES[raw]
    try:
        return SaleStatus(raw)
    except ValueError:
        raise ValidationError("Invalid status", detail={"status": value})


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _check_email(value: str) -> str:
    value = value.strip().lower()
    if not _EMAIL_RE.match(value):
        raise ValueError("invalid email")
    return value


def _check_password(value: str) -> str:
    if len(value) < 8:
        raise ValueError("must be at least 8 characters long")
    if not re.search(r"[A-Z]", value):
        raise ValueError("must include an upper-case letter")
    if not re.search(r"[a-z]", value):
        raise ValueError("must include a lower-case letter")
    if not re.search(r"\d", value):
        raise ValueError("must include a digit")
    if not re.search(r"[\W_]", value):
        raise ValueError("must include a symbol")
    return value


def _check_cents(value: float) -> float:
    if round(value, 2) != value:
        raise ValueError("must have at most 2 decimal places")
    return value


def _legacy_payment_method(value):
    if isinstance(value, str):
        return LEGACY_PAYMENT_METHODS.get(value.strip().lower(), value)
    return value


Text = Annotated[str, BeforeValidator(_strip)]
Email = Annotated[str, AfterValidator(_check_email)]
Password = Annotated[str, AfterValidator(_check_password)]
Price = Annotated[float, AfterValidator(_check_cents)]
PaymentMethodIn = Annotated[PaymentMethod, BeforeValidator(_legacy_payment_method)]


# ---------------------------
# Catalog schemas
# ---------------------------
class ProductIn(CamelModel):
    name: Text = Field(..., min_length=1)
    category: Text = Field(..., min_length=1)
    price: Price = Field(..., ge=0)
    stock: int = Field(..., ge=0)
    description: Optional[Text] = None
    image_url: Optional[HttpUrl] = None


class ProductUpdateIn(CamelModel):
    name: Optional[Text] = Field(None, min_length=1)
    category: Optional[Text] = Field(None, min_length=1)
    price: Optional[Price] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    description: Optional[Text] = None
    image_url: Optional[HttpUrl] = None


def make_product(product_id: str, p: ProductIn, now: datetime) -> Product:
    return Product(
        id=product_id,
        name=p.name,
        category=p.category,
        price=p.price,
        stock=p.stock,
        description=p.description,
        image_url=str(p.image_url) if p.image_url else None,
        created_at=now,
        updated_at=now,
    )


# ---------------------------
# Sale schemas
# ---------------------------
class SaleLineIn(CamelModel):
    product_id: Text = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)


class SaleCreateIn(CamelModel):
    products: List[SaleLineIn] = Field(..., min_length=1)
    payment_method: PaymentMethodIn


class SaleUpdateIn(CamelModel):
    products: Optional[List[SaleLineIn]] = Field(None, min_length=1)
    payment_method: Optional[PaymentMethodIn] = None
    # checked by the workflow so an unknown value surfaces as "Invalid status"
    status: Optional[str] = None


# ---------------------------
# User schemas
# ---------------------------
class RegisterIn(CamelModel):
    name: Text = Field(..., min_length=1)
    email: Email
    password: Password


class LoginIn(CamelModel):
    email: Email
    password: str = Field(..., min_length=1)


class ProfileUpdateIn(CamelModel):
    name: Optional[Text] = Field(None, min_length=1)
    email: Optional[Email] = None
    password: Optional[Password] = None


class UserUpdateIn(CamelModel):
    name: Optional[Text] = Field(None, min_length=1)
    email: Optional[Email] = None
    role: Optional[Role] = None
