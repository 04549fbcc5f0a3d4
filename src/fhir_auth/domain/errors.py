"""Error taxonomy for token acquisition.

All errors derive from FhirAuthError so callers can catch the whole family:
- ConfigurationError: invalid or contradictory AuthSettings (raised before any I/O)
- DiscoveryError: SMART configuration document unreachable or malformed
- KeyMaterialError: private key JWK malformed or of an unsupported type
- TokenRequestError: token endpoint rejected the request or answered with garbage
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fhir_auth.domain.validation import Violation


class FhirAuthError(Exception):
    """Base class for all token acquisition errors."""


@dataclass
class ConfigurationError(FhirAuthError):
    """Settings failed validation.

    Attributes:
        message: Human-readable message, including the formatted violations
        violations: Structured violations that caused the failure
    """

    message: str
    violations: list["Violation"] = field(default_factory=list)

    def __str__(self) -> str:
        return self.message


@dataclass
class DiscoveryError(FhirAuthError):
    """Error fetching or parsing a SMART configuration document.

    Attributes:
        message: Human-readable error message
        url: The discovery URL that failed
        status_code: HTTP status code (if a response was received)
    """

    message: str
    url: str
    status_code: int | None = None

    def __str__(self) -> str:
        return f"{self.message} (url: {self.url})"


@dataclass
class KeyMaterialError(FhirAuthError):
    """The configured private key cannot be used to sign client assertions."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class TokenRequestError(FhirAuthError):
    """Error during a client credentials token request.

    Attributes:
        message: Human-readable error message
        token_endpoint: The token endpoint that was called
        status_code: HTTP status code (None for transport failures)
        body: Raw response body, if any
        error_code: OAuth2 error code (e.g., "invalid_client")
        error_description: Detailed error description from the authorization server
    """

    message: str
    token_endpoint: str
    status_code: int | None = None
    body: str | None = None
    error_code: str | None = None
    error_description: str | None = None

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"(status: {self.status_code})")
        if self.error_code:
            parts.append(f"[{self.error_code}]")
        if self.error_description:
            parts.append(f": {self.error_description}")
        return " ".join(parts)
