"""Pydantic models describing the Gumroad v2 API payloads."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


def _none_to_blank(value: object) -> object:
    return "" if value is None else value


class GumroadBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class SalePayload(GumroadBaseModel):
    id: str
    email: str = ""
    product_id: str = ""
    product_name: str = ""
    refunded: bool = False
    partially_refunded: bool = False
    charged_back: bool = Field(default=False, alias="chargedback")
    subscription_id: str | None = None
    cancelled: bool = False
    ended: bool = False
    created_at: datetime | None = None

    _normalize_subscription = field_validator("subscription_id", mode="before")(_blank_to_none)
    _normalize_text = field_validator("email", "product_id", "product_name", mode="before")(
        _none_to_blank
    )

    @field_validator(
        "refunded", "partially_refunded", "charged_back", "cancelled", "ended", mode="before"
    )
    @classmethod
    def _null_is_false(cls, value: object) -> object:
        return False if value is None else value


class SalesResponse(GumroadBaseModel):
    success: bool
    sales: list[Mapping[str, object]] = Field(default_factory=list[Mapping[str, object]])
    next_page_key: str | None = None

    _normalize_page_key = field_validator("next_page_key", mode="before")(_blank_to_none)


class ProductPayload(GumroadBaseModel):
    id: str
    name: str = ""
    published: bool = False


class ProductsResponse(GumroadBaseModel):
    success: bool
    products: list[ProductPayload] = Field(default_factory=list[ProductPayload])


class UserPayload(GumroadBaseModel):
    name: str | None = None
    email: str | None = None


class UserResponse(GumroadBaseModel):
    success: bool
    user: UserPayload


class ErrorResponse(GumroadBaseModel):
    success: bool = False
    message: str | None = None


SalePayloadInput = SalePayload | Mapping[str, object]
