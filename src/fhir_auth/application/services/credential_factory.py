"""Credential factory: wires discovery, client authentication, token exchange and caching.

CredentialFactory is the composition root of the library. For a FHIR endpoint
and its AuthSettings it returns a TokenProvider, the single capability the
HTTP layer needs ("give me the current bearer token").

Key Features:
- Settings validated eagerly, before any network I/O
- SMART discovery performed once per FHIR base URL and kept for the factory lifetime
- One token cache shared by every provider, keyed by (token endpoint, client id),
  so FHIR servers behind the same authorization server share a token
- Owns its httpx transport (unless one is injected) and closes it after
  in-flight refreshes complete

Usage:
    async with CredentialFactory() as factory:
        provider = await factory.create_credentials("https://fhir.example.com/r4", settings)
        if provider is not None:
            token = await provider.current_token()
"""

import asyncio
import logging
import time
from typing import Any, Callable

import httpx

from fhir_auth.domain.errors import TokenRequestError
from fhir_auth.domain.models import DEFAULT_TOKEN_EXPIRY_TOLERANCE, AuthSettings, CachedToken, CacheKey
from fhir_auth.domain.validation import ensure_valid
from fhir_auth.infrastructure.adapters.client_auth import ClientCredentials, client_credentials_from_settings
from fhir_auth.infrastructure.adapters.smart_discovery import SMARTDiscoveryDocument, SMARTDiscoveryService
from fhir_auth.infrastructure.adapters.token_exchange import CLIENT_CREDENTIALS_GRANT_TYPE, OAuth2TokenExchangeClient

from .token_cache import TokenCache

logger = logging.getLogger(__name__)


class TokenProvider:
    """Serves the current bearer token for one (token endpoint, client) pair.

    Tokens come from the shared TokenCache; a stale or missing token triggers a
    single token exchange that concurrent callers wait on.
    """

    def __init__(
        self,
        cache: TokenCache,
        cache_key: CacheKey,
        credentials: ClientCredentials,
        exchange_client: OAuth2TokenExchangeClient,
        scope: str | None = None,
        expiry_tolerance: int = DEFAULT_TOKEN_EXPIRY_TOLERANCE,
        is_closed: Callable[[], bool] | None = None,
    ) -> None:
        self._cache = cache
        self._cache_key = cache_key
        self._credentials = credentials
        self._exchange_client = exchange_client
        self._scope = scope
        self._expiry_tolerance = expiry_tolerance
        self._is_closed = is_closed or (lambda: False)

    @property
    def cache_key(self) -> CacheKey:
        return self._cache_key

    @property
    def token_endpoint(self) -> str:
        return self._cache_key.token_endpoint

    async def current_token(self) -> str:
        """Return a valid access token.

        Raises:
            TokenRequestError: If the token exchange fails
            KeyMaterialError: If the client assertion cannot be signed
        """
        token = await self.current_credentials()
        return token.access_token

    async def current_credentials(self) -> CachedToken:
        """Return the full cached token (type, scope and expiry included).

        Raises:
            TokenRequestError: If the owning factory has been closed
        """
        if self._is_closed():
            raise TokenRequestError(message="CredentialFactory is closed", token_endpoint=self._cache_key.token_endpoint)
        return await self._cache.get(self._cache_key, self._exchange)

    def invalidate(self) -> None:
        """Forget the cached token, e.g. after the resource server rejected it."""
        self._cache.invalidate(self._cache_key)

    async def _exchange(self) -> CachedToken:
        return await self._exchange_client.exchange(
            self._cache_key.token_endpoint,
            self._credentials,
            scope=self._scope,
            expiry_tolerance=self._expiry_tolerance,
        )

    def __repr__(self) -> str:
        return f"TokenProvider(cache_key={self._cache_key!s}, credentials={self._credentials!r})"


class CredentialFactory:
    """Creates TokenProviders for FHIR endpoints.

    Example:
        factory = CredentialFactory(http_timeout=10.0)
        try:
            provider = await factory.create_credentials(fhir_url, settings)
        finally:
            await factory.aclose()
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        http_timeout: float = 10.0,
        clock: Callable[[], float] = time.time,
        discovery_service: SMARTDiscoveryService | None = None,
        exchange_client: OAuth2TokenExchangeClient | None = None,
        token_cache: TokenCache | None = None,
    ) -> None:
        """Initialize the factory.

        Args:
            http_client: Transport for discovery and token requests; created (and owned) when None
            http_timeout: Timeout for the owned transport, in seconds
            clock: Returns the current epoch time in seconds
            discovery_service: Optional discovery service (created on the transport if None)
            exchange_client: Optional token exchange client (created on the transport if None)
            token_cache: Optional shared token cache (created if None)
        """
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=http_timeout)
        self._clock = clock
        self._discovery = discovery_service or SMARTDiscoveryService(self._http_client)
        self._exchange_client = exchange_client or OAuth2TokenExchangeClient(self._http_client, clock=clock)
        self._token_cache = token_cache or TokenCache(clock=clock)
        self._discovery_cache: dict[str, SMARTDiscoveryDocument] = {}
        self._discovery_locks: dict[str, asyncio.Lock] = {}
        self._closed = False

        logger.info(
            "CredentialFactory initialized",
            extra={"owns_http_client": self._owns_client, "http_timeout": http_timeout},
        )

    @property
    def token_cache(self) -> TokenCache:
        return self._token_cache

    @property
    def closed(self) -> bool:
        return self._closed

    async def create_credentials(self, fhir_endpoint: str, settings: AuthSettings) -> TokenProvider | None:
        """Create a token provider for a FHIR endpoint.

        Args:
            fhir_endpoint: FHIR server base URL
            settings: Authentication settings for that server

        Returns:
            TokenProvider, or None when authentication is disabled

        Raises:
            ConfigurationError: If the settings are invalid
            KeyMaterialError: If the private key cannot be used
            DiscoveryError: If SMART discovery fails
            RuntimeError: If the factory has been closed
        """
        if self._closed:
            raise RuntimeError("CredentialFactory is closed")

        if not settings.enabled:
            logger.debug("Authentication disabled", extra={"fhir_endpoint": fhir_endpoint})
            return None

        ensure_valid(settings.validate(), "Invalid SMART authentication configuration")

        credentials = client_credentials_from_settings(settings, clock=self._clock)
        token_endpoint = await self._resolve_token_endpoint(fhir_endpoint, settings, credentials)

        provider = TokenProvider(
            cache=self._token_cache,
            cache_key=CacheKey(token_endpoint=token_endpoint, client_id=credentials.client_id),
            credentials=credentials,
            exchange_client=self._exchange_client,
            scope=settings.scope,
            expiry_tolerance=settings.token_expiry_tolerance,
            is_closed=lambda: self._closed,
        )
        logger.info(
            "Created SMART credentials",
            extra={
                "fhir_endpoint": fhir_endpoint,
                "token_endpoint": token_endpoint,
                "client_id": credentials.client_id,
                "auth_method": credentials.auth_method,
            },
        )
        return provider

    async def _resolve_token_endpoint(self, fhir_endpoint: str, settings: AuthSettings, credentials: ClientCredentials) -> str:
        if settings.token_endpoint is not None:
            return settings.token_endpoint

        document = await self.get_discovery_document(fhir_endpoint)
        if not document.supports_grant_type(CLIENT_CREDENTIALS_GRANT_TYPE):
            logger.warning(f"FHIR server may not support the client_credentials grant: {fhir_endpoint}")
        if not document.supports_auth_method(credentials.auth_method):
            logger.warning(
                f"FHIR server does not advertise token endpoint auth method {credentials.auth_method}: {fhir_endpoint}",
                extra={"auth_methods": list(document.token_endpoint_auth_methods_supported)},
            )
        return document.token_endpoint

    async def get_discovery_document(self, fhir_endpoint: str) -> SMARTDiscoveryDocument:
        """Return the SMART configuration for a FHIR base URL, fetching it on first use.

        Raises:
            DiscoveryError: If discovery fails (failures are not cached)
        """
        cache_key = fhir_endpoint.rstrip("/")
        # One lock per FHIR base: a slow server only delays lookups for itself
        lock = self._discovery_locks.setdefault(cache_key, asyncio.Lock())
        async with lock:
            document = self._discovery_cache.get(cache_key)
            if document is None:
                document = await self._discovery.resolve(fhir_endpoint)
                self._discovery_cache[cache_key] = document
            else:
                logger.debug(f"SMART discovery cache hit for {fhir_endpoint}")
            return document

    def get_cache_stats(self) -> dict[str, Any]:
        """Get cache statistics for monitoring."""
        return {
            "discovery_entries": len(self._discovery_cache),
            "fhir_endpoints": list(self._discovery_cache.keys()),
            "tokens": self._token_cache.get_cache_stats(),
        }

    async def aclose(self) -> None:
        """Release the transport once in-flight token refreshes have completed.

        In-flight refreshes are not cancelled. An injected http_client is left open.
        """
        if self._closed:
            return
        self._closed = True
        await self._token_cache.wait_idle()
        if self._owns_client:
            await self._http_client.aclose()
        logger.info("CredentialFactory closed")

    async def __aenter__(self) -> "CredentialFactory":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
