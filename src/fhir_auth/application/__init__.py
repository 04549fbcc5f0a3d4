"""Application layer: token cache, credential factory and settings."""

from .services import CacheState, CredentialFactory, TokenCache, TokenProvider
from .settings import FhirAuthSettings, configure_logging

__all__ = [
    "CredentialFactory",
    "TokenProvider",
    "TokenCache",
    "CacheState",
    "FhirAuthSettings",
    "configure_logging",
]
