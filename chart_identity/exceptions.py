"""Exceptions related to chart-identity."""

__all__ = [
    "ChartIdentityException",
    "InvalidIdentity",
    "InputException",
    "CheckException",
]


class ChartIdentityException(Exception):
    """Generic base exception used for this library."""


class InvalidIdentity(ChartIdentityException):
    """Raised when a chart, release or namespace name can't be used as an identity."""

    def __init__(self, field_name: str, value: str, reason: str) -> None:
        super().__init__(f"Invalid {field_name} '{value}': {reason}")
        self.field_name = field_name
        self.value = value
        self.reason = reason


class InputException(ChartIdentityException):
    """Raised when the values files or overrides are not formatted as expected."""


class CheckException(ChartIdentityException):
    """Raised when rendered releases fail the collision or image checks."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__(f"{len(errors)} check(s) failed")
        self.errors = errors
