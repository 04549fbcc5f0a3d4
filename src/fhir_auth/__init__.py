"""SMART Backend Services token provider for FHIR clients.

Obtains OAuth2 client credentials tokens (shared secret or private key JWT),
caches them and refreshes them shortly before they expire.

Usage:
    from fhir_auth import AuthSettings, BearerTokenAuth, CredentialFactory

    settings = AuthSettings.symmetric("my-client", "secret", scope="system/*.read")  # pragma: allowlist secret
    async with CredentialFactory() as factory:
        provider = await factory.create_credentials("https://fhir.example.com/r4", settings)
        async with httpx.AsyncClient(auth=BearerTokenAuth(provider)) as client:
            await client.get("https://fhir.example.com/r4/Patient")
"""

from .application import CacheState, CredentialFactory, FhirAuthSettings, TokenCache, TokenProvider, configure_logging
from .domain import (AuthSettings, CachedToken, CacheKey, ConfigurationError, DiscoveryError, FhirAuthError, KeyMaterialError, TokenRequestError, Violation, ensure_valid,
                     format_violations)
from .infrastructure.adapters import (AsymmetricClientCredentials, BearerTokenAuth, ClientAuthentication, OAuth2TokenExchangeClient, SMARTDiscoveryDocument, SMARTDiscoveryService,
                                      SymmetricClientCredentials)

__all__ = [
    # Composition root
    "CredentialFactory",
    "TokenProvider",
    "TokenCache",
    "CacheState",
    # Settings
    "AuthSettings",
    "FhirAuthSettings",
    "configure_logging",
    # Tokens
    "CachedToken",
    "CacheKey",
    # Adapters
    "SMARTDiscoveryService",
    "SMARTDiscoveryDocument",
    "SymmetricClientCredentials",
    "AsymmetricClientCredentials",
    "ClientAuthentication",
    "OAuth2TokenExchangeClient",
    "BearerTokenAuth",
    # Errors
    "FhirAuthError",
    "ConfigurationError",
    "DiscoveryError",
    "KeyMaterialError",
    "TokenRequestError",
    # Validation
    "Violation",
    "ensure_valid",
    "format_violations",
]
