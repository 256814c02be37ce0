"""
Tagged success/failure results for operations that cross an external boundary.

External calls (classifier, embeddings, scraping, geocoding) never raise into
the core; they return Ok(value) or Err(ApiError).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar, Union

from pydantic import Field

from .base import FrozenCamelModel

T = TypeVar("T")


class ApiErrorKind(str, Enum):
    """Error taxonomy for external calls."""

    RATE_LIMIT = "rate_limit"
    AUTH = "auth"
    QUOTA = "quota"
    NETWORK = "network"
    INVALID_RESPONSE = "invalid_response"
    INVALID_REQUEST = "invalid_request"


class ApiError(FrozenCamelModel):
    """Typed failure from an external call."""

    kind: ApiErrorKind
    message: str
    retry_after: Optional[float] = Field(default=None, description="Seconds, when provided")

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: ApiError

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]
