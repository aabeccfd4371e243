# freshcart/schemas.py
import re
from typing import Iterable, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator

PHONE_RE = re.compile(r"^[6-9]\d{9}$")  # индийский мобильный номер, 10 цифр
SPECIAL_CHARS_RE = re.compile(r"[!@#$%^&*(),.?\":{}|<>+\-_]")

ProductId = Union[int, str]


def form_errors(errors: Iterable[dict]) -> dict:
    """Flatten pydantic error dicts into {field: message} for the client."""
    out = {}
    for err in errors:
        field = next((str(p) for p in reversed(err.get("loc", ())) if isinstance(p, str)), "__root__")
        if err.get("type") == "value_error" and err.get("ctx", {}).get("error"):
            message = str(err["ctx"]["error"])
        else:
            message = err.get("msg", "Invalid value")
        out.setdefault(field, message)
    return out


def _check_phone(value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError("Phone number is required")
    if not PHONE_RE.match(value):
        raise ValueError("Invalid phone number")
    return value


# 👤 Пользователь
class SignupRequest(BaseModel):
    name: str
    email: EmailStr
    password: str
    phone: str

    @field_validator("name")
    @classmethod
    def name_min_length(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        if len(v) < 3:
            raise ValueError("Min 3 characters")
        return v

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Minimum 8 characters")
        if not re.search(r"[A-Za-z]", v):
            raise ValueError("Include a letter")
        if not re.search(r"\d", v):
            raise ValueError("Include a number")
        if not SPECIAL_CHARS_RE.search(v):
            raise ValueError("Include a special character")
        return v

    @field_validator("phone")
    @classmethod
    def phone_format(cls, v: str) -> str:
        return _check_phone(v)


class LoginRequest(BaseModel):
    # без проверки формата: любой непройденный вход отвечает одним и тем же 401
    email: str
    password: str


class TokenResponse(BaseModel):
    message: str = "success"
    token: str


class UserOut(BaseModel):
    id: int
    name: str
    email: EmailStr
    phone: str

    model_config = ConfigDict(from_attributes=True)


# 🛍️ Товар из каталога (только чтение; лишние поля каталога сохраняются)
class Product(BaseModel):
    id: ProductId = Field(validation_alias=AliasChoices("id", "_id"))
    title: Optional[str] = None
    price: Optional[float] = None
    image_cover_url: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("imageCoverUrl", "imageCover", "image_cover_url"),
        serialization_alias="imageCoverUrl",
    )

    model_config = ConfigDict(extra="allow", populate_by_name=True)


# 🛒 Корзина
class CartProduct(BaseModel):
    id: ProductId
    title: str = "Untitled Product"
    image_cover_url: str = Field(
        "",
        validation_alias=AliasChoices("imageCoverUrl", "image_cover_url"),
        serialization_alias="imageCoverUrl",
    )

    model_config = ConfigDict(populate_by_name=True)


class CartLine(BaseModel):
    product: CartProduct
    price: float = Field(ge=0)  # цена за единицу
    count: int = Field(ge=1)


class CartSnapshot(BaseModel):
    products: List[CartLine] = Field(default_factory=list)
    total_cart_price: float = Field(
        0,
        validation_alias=AliasChoices("totalCartPrice", "total_cart_price"),
        serialization_alias="totalCartPrice",
    )

    model_config = ConfigDict(populate_by_name=True)


# 💳 Оформление заказа
class CheckoutForm(BaseModel):
    city: str = ""
    details: Optional[str] = ""
    phone: str = ""

    @field_validator("city")
    @classmethod
    def city_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Address is required")
        if len(v) < 3:
            raise ValueError("Min 3 characters")
        return v

    @field_validator("phone")
    @classmethod
    def phone_format(cls, v: str) -> str:
        return _check_phone(v)


class PaymentPrefill(BaseModel):
    email: str = ""
    contact: str = ""


class PaymentOrder(BaseModel):
    """Options handed to the payment widget. `amount` is in minor units (paise)."""
    key: str
    amount: int
    currency: str
    name: str
    description: str
    prefill: PaymentPrefill
