"""Test data factories and builders.

Provides reusable builders for settings, token responses and mocked HTTP
responses with sensible defaults and easy customization.
"""

from typing import Any
from unittest.mock import MagicMock

from fhir_auth.domain.models import AuthSettings

FHIR_BASE_URL = "https://fhir.example.com/r4"
TOKEN_ENDPOINT = "https://auth.example.com/token"
CLIENT_ID = "fhir-backend-client"
CLIENT_SECRET = "fhir-backend-secret"  # pragma: allowlist secret

# ============================================================================
# CLOCK
# ============================================================================


class FakeClock:
    """Deterministic clock returning a settable epoch time."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ============================================================================
# SETTINGS FACTORY
# ============================================================================


class AuthSettingsFactory:
    """Factory for AuthSettings with sensible defaults."""

    @staticmethod
    def symmetric(**overrides: Any) -> AuthSettings:
        values: dict[str, Any] = {
            "enabled": True,
            "use_smart": True,
            "client_id": CLIENT_ID,
            "client_secret": CLIENT_SECRET,
            "scope": "system/*.read",
        }
        values.update(overrides)
        return AuthSettings(**values)

    @staticmethod
    def asymmetric(private_key_jwk: Any, **overrides: Any) -> AuthSettings:
        values: dict[str, Any] = {
            "enabled": True,
            "use_smart": True,
            "client_id": CLIENT_ID,
            "private_key_jwk": private_key_jwk,
            "scope": "system/*.read",
        }
        values.update(overrides)
        return AuthSettings(**values)


# ============================================================================
# RESPONSE FACTORIES
# ============================================================================


def token_response(access_token: str = "access-token-1", expires_in: Any = 300, **extra: Any) -> dict[str, Any]:
    """Build a token endpoint JSON body."""
    body: dict[str, Any] = {"access_token": access_token, "token_type": "Bearer", "expires_in": expires_in}
    body.update(extra)
    return body


def discovery_response(token_endpoint: str = TOKEN_ENDPOINT, **extra: Any) -> dict[str, Any]:
    """Build a SMART configuration JSON body."""
    body: dict[str, Any] = {
        "token_endpoint": token_endpoint,
        "grant_types_supported": ["client_credentials"],
        "token_endpoint_auth_methods_supported": ["client_secret_basic", "client_secret_post", "private_key_jwt"],
        "token_endpoint_auth_signing_alg_values_supported": ["RS384", "ES384"],
        "capabilities": ["client-confidential-asymmetric", "permission-v2"],
    }
    body.update(extra)
    return body


def mock_response(status_code: int = 200, json_body: Any = None, text: str = "") -> MagicMock:
    """Build a MagicMock standing in for httpx.Response."""
    response = MagicMock()
    response.status_code = status_code
    if isinstance(json_body, Exception):
        response.json.side_effect = json_body
    else:
        response.json.return_value = json_body
    response.text = text
    return response
