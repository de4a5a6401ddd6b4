"""
Result type for negative outcomes that are not errors.

Team formation and round expansion report "no valid split" or "bad match spec"
as ordinary return values so the orchestrator can branch on them without
exception handling.

Usage:
    return Result.ok(teams)
    return Result.fail("Not enough eligible participants", code=TEAM_FORMATION_FAILED)

    result = sequencer.expand("4-All", 3)
    if result:
        rounds = result.value
    else:
        logger.warning(f"Rejected match spec ({result.error_code}): {result.error}")
"""

from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a pure scheduling operation.

    Attributes:
        success: Whether the operation produced a value
        value: The value on success
        error: Human readable reason on failure
        error_code: Code from services.error_codes on failure
    """

    success: bool
    value: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def ok(cls, value: T | None = None) -> "Result[T]":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str, code: str | None = None) -> "Result[T]":
        return cls(success=False, error=error, error_code=code)

    def __bool__(self) -> bool:
        return self.success

    def unwrap(self) -> T:
        """
        Get the value, raising ValueError on a failed result.

        Raises:
            ValueError: If the result is a failure
        """
        if not self.success:
            raise ValueError(f"Cannot unwrap failed result: {self.error}")
        return self.value  # type: ignore

    def unwrap_or(self, default: T) -> T:
        return self.value if self.success else default  # type: ignore

    def map(self, fn: Callable[[T], "Result"]) -> "Result":
        """Chain fn onto a successful result; failures pass through unchanged."""
        if not self.success:
            return self
        return fn(self.value)
