from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar


T = TypeVar("T")


class FailureReason(str, Enum):
    NO_PROVIDER = "no_provider"
    CONFIGURATION = "configuration"
    API = "api"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Either a value or the reason it could not be produced."""

    value: Optional[T] = None
    failure: Optional[FailureReason] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, reason: FailureReason, message: str = "") -> "Outcome[T]":
        return cls(failure=reason, message=message)
