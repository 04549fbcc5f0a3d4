"""SMART Configuration Discovery Service.

Fetches SMART App Launch / Backend Services configuration documents
(.well-known/smart-configuration) from FHIR servers to find the token
endpoint and the client authentication methods the server supports.

Key Features:
- Resolves the well-known document relative to a FHIR base URL
- Alternate entry point for explicit metadata URLs (fetched verbatim)
- Case-insensitive, snake_case field mapping
- Comprehensive observability (tracing, logging)

The service is stateless: callers cache documents (see CredentialFactory).

Usage:
    discovery = SMARTDiscoveryService(http_client)

    doc = await discovery.resolve("https://fhir.example.com/r4")
    token_url = doc.token_endpoint
"""

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx
from opentelemetry import trace

from fhir_auth.domain.errors import DiscoveryError
from fhir_auth.observability import discovery_failures, discovery_fetches

from ..web_utils import ensure_path_ends_with_slash

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

SMART_WELL_KNOWN_CONFIGURATION_PATH = ".well-known/smart-configuration"

_LIST_FIELDS = (
    "grant_types_supported",
    "token_endpoint_auth_methods_supported",
    "token_endpoint_auth_signing_alg_values_supported",
    "capabilities",
)


@dataclass(frozen=True)
class SMARTDiscoveryDocument:
    """SMART configuration document.

    Attributes:
        token_endpoint: OAuth2 token endpoint
        grant_types_supported: Supported OAuth2 grant types
        token_endpoint_auth_methods_supported: Token endpoint client authentication methods
        token_endpoint_auth_signing_alg_values_supported: Algorithms accepted for client assertions
        capabilities: SMART capabilities advertised by the server
    """

    token_endpoint: str
    grant_types_supported: tuple[str, ...] = field(default_factory=tuple)
    token_endpoint_auth_methods_supported: tuple[str, ...] = field(default_factory=tuple)
    token_endpoint_auth_signing_alg_values_supported: tuple[str, ...] = field(default_factory=tuple)
    capabilities: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SMARTDiscoveryDocument":
        """Create SMARTDiscoveryDocument from a raw discovery response.

        Keys are matched case-insensitively.

        Args:
            data: Parsed JSON object from .well-known/smart-configuration

        Returns:
            Parsed SMARTDiscoveryDocument

        Raises:
            ValueError: If token_endpoint is missing or a list field is malformed
        """
        normalized = {str(key).lower(): value for key, value in data.items()}

        token_endpoint = normalized.get("token_endpoint")
        if not token_endpoint or not isinstance(token_endpoint, str):
            raise ValueError("Discovery document missing required field: token_endpoint")

        lists: dict[str, tuple[str, ...]] = {}
        for name in _LIST_FIELDS:
            value = normalized.get(name)
            if value is None:
                lists[name] = ()
            elif isinstance(value, list) and all(isinstance(item, str) for item in value):
                lists[name] = tuple(value)
            else:
                raise ValueError(f"Discovery document field {name} must be a list of strings")

        return cls(token_endpoint=token_endpoint, **lists)

    def supports_grant_type(self, grant_type: str) -> bool:
        """Check if the server advertises an OAuth2 grant type.

        An empty grant_types_supported is treated as "not advertised", so any
        grant type is assumed to be supported.
        """
        if not self.grant_types_supported:
            return True
        return grant_type in self.grant_types_supported

    def supports_auth_method(self, auth_method: str) -> bool:
        """Check if the server advertises a token endpoint auth method.

        An empty token_endpoint_auth_methods_supported is treated as "not advertised".
        """
        if not self.token_endpoint_auth_methods_supported:
            return True
        return auth_method in self.token_endpoint_auth_methods_supported


def smart_configuration_url(fhir_base_url: str) -> str:
    """Build the .well-known/smart-configuration URL for a FHIR base URL.

    Args:
        fhir_base_url: FHIR server base (e.g., https://fhir.example.com/r4)

    Returns:
        Full discovery URL (e.g., https://fhir.example.com/r4/.well-known/smart-configuration)
    """
    base = ensure_path_ends_with_slash(httpx.URL(fhir_base_url))
    return str(base.join(SMART_WELL_KNOWN_CONFIGURATION_PATH))


class SMARTDiscoveryService:
    """Service for fetching SMART configuration documents.

    Example:
        service = SMARTDiscoveryService(http_client)

        # Relative to the FHIR base
        doc = await service.resolve("https://fhir.example.com/r4")

        # Explicit metadata URL
        doc = await service.resolve_from_url("https://auth.example.com/.well-known/oauth-authorization-server")
    """

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        """Initialize the discovery service.

        Args:
            http_client: Transport used for discovery requests (owned by the caller)
        """
        self._http_client = http_client

    async def resolve(self, fhir_base_url: str) -> SMARTDiscoveryDocument:
        """Fetch the SMART configuration of a FHIR server.

        Args:
            fhir_base_url: FHIR server base URL, with or without a trailing slash

        Returns:
            SMARTDiscoveryDocument with server metadata

        Raises:
            DiscoveryError: If discovery fails
        """
        try:
            discovery_url = smart_configuration_url(fhir_base_url)
        except httpx.InvalidURL as e:
            raise DiscoveryError(message=f"Invalid FHIR base URL: {e}", url=fhir_base_url) from e
        return await self.resolve_from_url(discovery_url)

    async def resolve_from_url(self, metadata_url: str) -> SMARTDiscoveryDocument:
        """Fetch a configuration document from an explicit URL, without rewriting it.

        Args:
            metadata_url: URL pointing directly at the configuration document

        Returns:
            SMARTDiscoveryDocument with server metadata

        Raises:
            DiscoveryError: If discovery fails
        """
        with tracer.start_as_current_span("smart_discovery.resolve") as span:
            span.set_attribute("smart.discovery_url", metadata_url)
            discovery_fetches.add(1)

            try:
                response = await self._http_client.get(metadata_url, headers={"Accept": "application/json"})
            except httpx.TimeoutException as e:
                logger.warning(f"SMART discovery timeout for {metadata_url}")
                discovery_failures.add(1, {"reason": "timeout"})
                raise DiscoveryError(message="SMART discovery request timed out", url=metadata_url) from e
            except httpx.RequestError as e:
                logger.warning(f"SMART discovery request error for {metadata_url}: {e}")
                discovery_failures.add(1, {"reason": "transport"})
                raise DiscoveryError(message=f"SMART discovery request failed: {e}", url=metadata_url) from e

            span.set_attribute("http.status_code", response.status_code)
            if not 200 <= response.status_code < 300:
                logger.warning(f"SMART discovery failed: status={response.status_code} for {metadata_url}")
                discovery_failures.add(1, {"reason": "status"})
                raise DiscoveryError(
                    message=f"SMART discovery failed with status {response.status_code}",
                    url=metadata_url,
                    status_code=response.status_code,
                )

            try:
                data = response.json()
                if not isinstance(data, dict):
                    raise ValueError("Discovery document is not a JSON object")
                document = SMARTDiscoveryDocument.from_dict(data)
            except ValueError as e:
                logger.warning(f"SMART discovery parse error for {metadata_url}: {e}")
                discovery_failures.add(1, {"reason": "parse"})
                raise DiscoveryError(
                    message=f"Invalid SMART configuration document: {e}",
                    url=metadata_url,
                    status_code=response.status_code,
                ) from e

            span.set_attribute("smart.token_endpoint", document.token_endpoint)
            logger.info(
                "SMART discovery successful",
                extra={
                    "discovery_url": metadata_url,
                    "token_endpoint": document.token_endpoint,
                    "auth_methods": list(document.token_endpoint_auth_methods_supported),
                },
            )
            return document
