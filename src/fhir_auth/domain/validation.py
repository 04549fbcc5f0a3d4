"""Explicit validation helpers.

Validators return a list of Violation records instead of raising on the first
problem, so every issue with a configuration is reported at once.

Usage:
    acc = ViolationAccumulator()
    acc.check_that(settings.client_id is not None, "must be supplied", "clientId")
    ensure_valid(acc.violations, "Invalid SMART authentication configuration")
"""

from dataclasses import dataclass

from .errors import ConfigurationError


@dataclass(frozen=True)
class Violation:
    """A single failed constraint.

    Attributes:
        message: What is wrong
        path: The offending property (None for object-level constraints)
    """

    message: str
    path: str | None = None

    def __str__(self) -> str:
        if not self.path or not self.path.strip():
            return self.message
        return f"{self.path}: {self.message}"


class ViolationAccumulator:
    """Collects violations through a fluent check API."""

    def __init__(self) -> None:
        self._violations: list[Violation] = []

    @property
    def valid(self) -> bool:
        return not self._violations

    @property
    def violations(self) -> list[Violation]:
        return list(self._violations)

    def check_that(self, assertion: bool, message: str, path: str | None = None) -> "ViolationAccumulator":
        """Record a violation unless the assertion holds."""
        if not assertion:
            self.add_violation(message, path)
        return self

    def add_violation(self, message: str, path: str | None = None) -> "ViolationAccumulator":
        self._violations.append(Violation(message=message, path=path))
        return self


def format_violations(violations: list[Violation]) -> str:
    """Render violations as sorted ``path: message`` lines."""
    return "\n".join(sorted(str(v) for v in violations if v is not None))


def ensure_valid(violations: list[Violation], title: str | None = None) -> None:
    """Raise ConfigurationError if there are any violations.

    Args:
        violations: Result of a validator
        title: Optional first line of the error message

    Raises:
        ConfigurationError: If violations is not empty
    """
    if not violations:
        return
    formatted = format_violations(violations)
    message = f"{title}\n{formatted}" if title is not None else formatted
    raise ConfigurationError(message=message, violations=list(violations))
