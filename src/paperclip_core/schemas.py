from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from functools import lru_cache
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, TypeAdapter, field_serializer, field_validator

DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
TModel = TypeVar("TModel")


def _ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_wire_date(value: Any) -> datetime:
    if isinstance(value, datetime):
        return _ensure_aware(value)
    if not isinstance(value, str):
        raise ValueError(f"date must be a string, got {type(value).__name__}")
    try:
        return datetime.strptime(value.strip(), DATE_FORMAT)
    except ValueError as exc:
        raise ValueError(
            f"Date string {value!r} does not match format yyyy-MM-dd'T'HH:mm:ssZZZZ"
        ) from exc


def format_wire_date(value: datetime) -> str:
    return value.strftime(DATE_FORMAT)


class RecordBase(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class Category(RecordBase):
    id: int
    name: str


CATEGORY_ALL = Category(id=-1, name="All Categories")


class ImageUrls(RecordBase):
    small: str | None = None
    thumb: str | None = None

    @field_validator("small", "thumb", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> str | None:
        if not isinstance(value, str) or not value.strip():
            return None
        return value


class ClassifiedAd(RecordBase):
    id: int
    category_id: int
    title: str
    description: str
    price: float
    images_url: ImageUrls
    creation_date: datetime
    is_urgent: bool
    siret: str | None = None

    @field_validator("creation_date", mode="before")
    @classmethod
    def validate_creation_date(cls, value: Any) -> datetime:
        return parse_wire_date(value)

    @field_serializer("creation_date")
    def serialize_creation_date(self, value: datetime) -> str:
        return format_wire_date(value)


class SortOption(StrEnum):
    DATE_DESCENDING = "date_descending"
    DATE_ASCENDING = "date_ascending"
    PRICE_ASCENDING = "price_ascending"
    PRICE_DESCENDING = "price_descending"
    URGENT_FIRST = "urgent_first"


@lru_cache(maxsize=64)
def adapter_for(model: Any) -> TypeAdapter[Any]:
    return TypeAdapter(model)


def validate_json(model: type[TModel] | Any, payload: str | bytes | bytearray) -> TModel:
    """Decode a JSON document into ``model`` (any type pydantic can validate)."""
    return adapter_for(model).validate_json(payload)


def dump_json(value: Any, model: Any = None) -> bytes:
    return adapter_for(model if model is not None else type(value)).dump_json(value)
