"""Domain layer: settings, token value objects, validation and errors."""

from .errors import ConfigurationError, DiscoveryError, FhirAuthError, KeyMaterialError, TokenRequestError
from .models import DEFAULT_TOKEN_EXPIRY_TOLERANCE, AuthSettings, CachedToken, CacheKey
from .validation import Violation, ViolationAccumulator, ensure_valid, format_violations

__all__ = [
    "AuthSettings",
    "DEFAULT_TOKEN_EXPIRY_TOLERANCE",
    "CachedToken",
    "CacheKey",
    "FhirAuthError",
    "ConfigurationError",
    "DiscoveryError",
    "KeyMaterialError",
    "TokenRequestError",
    "Violation",
    "ViolationAccumulator",
    "ensure_valid",
    "format_violations",
]
