"""Infrastructure adapters package.

Contains adapters for talking to FHIR and authorization servers:
- SMARTDiscoveryService: .well-known/smart-configuration discovery
- SymmetricClientCredentials / AsymmetricClientCredentials: token endpoint client authentication
- OAuth2TokenExchangeClient: client credentials grant
- BearerTokenAuth: httpx hook attaching bearer tokens to outgoing requests
"""

from .bearer_auth import BearerTokenAuth
from .client_auth import (JWT_BEARER_CLIENT_ASSERTION_TYPE, AsymmetricClientCredentials, ClientAuthentication, ClientCredentials, SymmetricClientCredentials, client_credentials_from_settings,
                          select_signing_algorithm)
from .smart_discovery import SMART_WELL_KNOWN_CONFIGURATION_PATH, SMARTDiscoveryDocument, SMARTDiscoveryService, smart_configuration_url
from .token_exchange import OAuth2TokenExchangeClient, parse_token_response

__all__ = [
    "BearerTokenAuth",
    "ClientAuthentication",
    "ClientCredentials",
    "SymmetricClientCredentials",
    "AsymmetricClientCredentials",
    "JWT_BEARER_CLIENT_ASSERTION_TYPE",
    "client_credentials_from_settings",
    "select_signing_algorithm",
    "SMARTDiscoveryService",
    "SMARTDiscoveryDocument",
    "SMART_WELL_KNOWN_CONFIGURATION_PATH",
    "smart_configuration_url",
    "OAuth2TokenExchangeClient",
    "parse_token_response",
]
