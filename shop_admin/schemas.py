"""
Request and response models.

Form bodies arrive as flat string maps, so structured sub-fields (a user's
``address``, a product's ``images``) may be JSON-encoded strings.  They are
decoded exactly once here, in ``before`` validators, and a decode failure
surfaces like any other field error.  ``decode`` turns pydantic's error
list into the service-level ``ValidationError``.
"""
import json
from datetime import datetime
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

from shop_admin.exceptions import ValidationError

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

FormModelType = TypeVar("FormModelType", bound="FormModel")


def decode_json_field(value: Any, expected: type, message: str) -> Any:
    """Return *value* decoded from JSON if it is a string; enforce its type."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            raise PydanticCustomError("json_string", message)
    if not isinstance(value, expected):
        raise PydanticCustomError("json_string", message)
    return value


def decode(model: type[FormModelType], data: dict[str, Any]) -> FormModelType:
    """Validate *data* against *model*, raising the service ``ValidationError``."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        errors = [
            (".".join(str(part) for part in err["loc"]) or "body", err["msg"])
            for err in exc.errors()
        ]
        raise ValidationError("Validation error", errors) from exc


class FormModel(BaseModel):
    """Base for request bodies; blank strings count as "no value"."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _blank_to_none(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {
                key: None if isinstance(value, str) and not value.strip() else value
                for key, value in data.items()
            }
        return data


# --- User ---

class Address(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    street: str | None = None
    city: str | None = None
    province: str | None = None
    postal_code: str | None = None


class _UserFields(FormModel):
    @field_validator("address", mode="before", check_fields=False)
    @classmethod
    def _decode_address(cls, value: Any) -> Any:
        if value is None:
            return None
        return decode_json_field(value, dict, "Address must be a valid JSON string.")

    @field_validator("username", "email", check_fields=False)
    @classmethod
    def _lowercase(cls, value: str | None) -> str | None:
        return value.lower() if value is not None else None


class UserCreate(_UserFields):
    username: str = Field(min_length=3, max_length=30)
    name: str = Field(max_length=100)
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6)
    phone_number: str | None = Field(None, max_length=15)
    address: Address | None = None


class UserUpdate(_UserFields):
    username: str | None = Field(None, min_length=3, max_length=30)
    name: str | None = Field(None, max_length=100)
    email: str | None = Field(None, max_length=255, pattern=EMAIL_PATTERN)
    password: str | None = Field(None, min_length=6)
    phone_number: str | None = Field(None, max_length=15)
    address: Address | None = None
    role: Literal["user", "admin"] | None = None
    # Only meaningful as the clear sentinel (null or empty string).
    profile_picture: str | None = None


class LoginRequest(FormModel):
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6)


class UserResponse(BaseModel):
    id: int
    username: str
    name: str
    email: str
    phone_number: str | None = None
    address: Address | None = None
    profile_picture: str
    role: str
    created_at: datetime
    updated_at: datetime | None = None


class LoginResponse(BaseModel):
    user: UserResponse
    token: str


# --- Product ---

class _ProductFields(FormModel):
    @field_validator("images", mode="before", check_fields=False)
    @classmethod
    def _decode_images(cls, value: Any) -> Any:
        if value is None:
            return None
        return decode_json_field(value, list, "Images must be a valid JSON array string.")

    @field_validator("images", check_fields=False)
    @classmethod
    def _check_references(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        references = [item.strip() for item in value if item.strip()]
        for reference in references:
            if "/" in reference or "\\" in reference or reference in (".", ".."):
                raise PydanticCustomError(
                    "image_reference", "Image references must be plain filenames."
                )
        return references


class ProductCreate(_ProductFields):
    name: str = Field(min_length=3, max_length=200)
    description: str = Field(max_length=1000)
    price: float = Field(ge=0, allow_inf_nan=False)
    discount_price: float | None = Field(None, ge=0, allow_inf_nan=False)
    stock: int = Field(ge=0)
    category: str = Field(max_length=50)
    brand: str | None = Field(None, max_length=100)
    images: list[str] | None = None


class ProductUpdate(_ProductFields):
    name: str | None = Field(None, min_length=3, max_length=200)
    description: str | None = Field(None, max_length=1000)
    price: float | None = Field(None, ge=0, allow_inf_nan=False)
    discount_price: float | None = Field(None, ge=0, allow_inf_nan=False)
    stock: int | None = Field(None, ge=0)
    category: str | None = Field(None, max_length=50)
    brand: str | None = Field(None, max_length=100)
    # Absent: keep; null/"": clear; list: add to the current images.
    images: list[str] | None = None


class ProductResponse(BaseModel):
    id: int
    name: str
    description: str
    price: float
    discount_price: float | None = None
    stock: int
    category: str
    brand: str | None = None
    images: list[str]
    created_at: datetime
    updated_at: datetime | None = None


# --- Metrics ---

class MetricsResponse(BaseModel):
    total_users: int
    total_products: int
    cache_info: dict = {}
