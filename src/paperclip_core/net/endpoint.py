from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

CATEGORIES_URL = "https://raw.githubusercontent.com/leboncoin/paperclip/master/categories.json"
LISTINGS_URL = "https://raw.githubusercontent.com/leboncoin/paperclip/master/listing.json"
DEFAULT_RETRY_COUNT = 2
DEFAULT_TIMEOUT_SECONDS = 30.0


class HTTPMethod(StrEnum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


class Endpoint(BaseModel):
    """Immutable description of one fetchable HTTP resource."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    url: str
    method: HTTPMethod = HTTPMethod.GET
    retry_count: int = Field(default=0, ge=0)
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)

    @field_validator("url")
    @classmethod
    def strip_url(cls, value: str) -> str:
        return value.strip()

    @property
    def cache_key(self) -> str:
        return self.url

    @classmethod
    def categories(
        cls,
        url: str | None = None,
        *,
        retry_count: int = DEFAULT_RETRY_COUNT,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> Endpoint:
        return cls(url=url or CATEGORIES_URL, retry_count=retry_count, timeout_seconds=timeout_seconds)

    @classmethod
    def listings(
        cls,
        url: str | None = None,
        *,
        retry_count: int = DEFAULT_RETRY_COUNT,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> Endpoint:
        return cls(url=url or LISTINGS_URL, retry_count=retry_count, timeout_seconds=timeout_seconds)
