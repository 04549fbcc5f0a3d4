"""Tests for SMARTDiscoveryService.

Tests cover:
- Well-known URL construction
- Discovery document parsing
- Fetching from FHIR base URLs and explicit metadata URLs
- Error handling
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from fhir_auth.domain.errors import DiscoveryError
from fhir_auth.infrastructure.adapters.smart_discovery import SMARTDiscoveryDocument, SMARTDiscoveryService, smart_configuration_url
from tests.fixtures import TOKEN_ENDPOINT, discovery_response, mock_response

# ============================================================================
# WELL-KNOWN URL TESTS
# ============================================================================


class TestSmartConfigurationUrl:
    """Test smart_configuration_url()."""

    def test_appends_well_known_path_without_trailing_slash(self) -> None:
        """Test the FHIR base path is kept when it lacks a trailing slash."""
        assert smart_configuration_url("https://fhir.example.com/r4") == "https://fhir.example.com/r4/.well-known/smart-configuration"

    def test_appends_well_known_path_with_trailing_slash(self) -> None:
        """Test a trailing slash is not doubled."""
        assert smart_configuration_url("https://fhir.example.com/r4/") == "https://fhir.example.com/r4/.well-known/smart-configuration"

    def test_host_only_base(self) -> None:
        """Test a base URL without a path."""
        assert smart_configuration_url("https://fhir.example.com") == "https://fhir.example.com/.well-known/smart-configuration"

    def test_nested_base_path(self) -> None:
        """Test deeper base paths are preserved."""
        assert smart_configuration_url("https://example.com/fhir/tenant-a/r4") == "https://example.com/fhir/tenant-a/r4/.well-known/smart-configuration"


# ============================================================================
# DISCOVERY DOCUMENT TESTS
# ============================================================================


class TestSMARTDiscoveryDocument:
    """Test SMARTDiscoveryDocument parsing."""

    def test_from_dict_parses_discovery_response(self) -> None:
        """Test from_dict() reads every supported field."""
        doc = SMARTDiscoveryDocument.from_dict(discovery_response())

        assert doc.token_endpoint == TOKEN_ENDPOINT
        assert doc.grant_types_supported == ("client_credentials",)
        assert "private_key_jwt" in doc.token_endpoint_auth_methods_supported
        assert doc.token_endpoint_auth_signing_alg_values_supported == ("RS384", "ES384")
        assert doc.capabilities == ("client-confidential-asymmetric", "permission-v2")

    def test_from_dict_minimal(self) -> None:
        """Test optional list fields default to empty."""
        doc = SMARTDiscoveryDocument.from_dict({"token_endpoint": TOKEN_ENDPOINT})

        assert doc.token_endpoint == TOKEN_ENDPOINT
        assert doc.grant_types_supported == ()
        assert doc.token_endpoint_auth_methods_supported == ()
        assert doc.token_endpoint_auth_signing_alg_values_supported == ()
        assert doc.capabilities == ()

    def test_from_dict_ignores_key_case(self) -> None:
        """Test keys are matched case-insensitively."""
        doc = SMARTDiscoveryDocument.from_dict({"Token_Endpoint": TOKEN_ENDPOINT, "CAPABILITIES": ["sso-openid-connect"]})

        assert doc.token_endpoint == TOKEN_ENDPOINT
        assert doc.capabilities == ("sso-openid-connect",)

    def test_from_dict_ignores_unknown_fields(self) -> None:
        """Test extra metadata does not break parsing."""
        doc = SMARTDiscoveryDocument.from_dict(discovery_response(issuer="https://auth.example.com", jwks_uri="https://auth.example.com/jwks"))

        assert doc.token_endpoint == TOKEN_ENDPOINT

    def test_from_dict_requires_token_endpoint(self) -> None:
        """Test a missing token_endpoint is rejected."""
        with pytest.raises(ValueError, match="token_endpoint"):
            SMARTDiscoveryDocument.from_dict({"capabilities": []})

    def test_from_dict_rejects_malformed_list(self) -> None:
        """Test list fields must hold strings."""
        with pytest.raises(ValueError, match="grant_types_supported"):
            SMARTDiscoveryDocument.from_dict({"token_endpoint": TOKEN_ENDPOINT, "grant_types_supported": "client_credentials"})

    def test_supports_auth_method(self) -> None:
        """Test auth method checks, including the not-advertised case."""
        advertised = SMARTDiscoveryDocument(token_endpoint=TOKEN_ENDPOINT, token_endpoint_auth_methods_supported=("private_key_jwt",))
        silent = SMARTDiscoveryDocument(token_endpoint=TOKEN_ENDPOINT)

        assert advertised.supports_auth_method("private_key_jwt") is True
        assert advertised.supports_auth_method("client_secret_basic") is False
        assert silent.supports_auth_method("client_secret_basic") is True

    def test_supports_grant_type(self) -> None:
        """Test grant type checks."""
        doc = SMARTDiscoveryDocument(token_endpoint=TOKEN_ENDPOINT, grant_types_supported=("authorization_code",))

        assert doc.supports_grant_type("client_credentials") is False
        assert doc.supports_grant_type("authorization_code") is True


# ============================================================================
# DISCOVERY SERVICE TESTS
# ============================================================================


class TestSMARTDiscoveryService:
    """Test SMARTDiscoveryService fetching."""

    @pytest.fixture
    def http_client(self) -> MagicMock:
        """Mocked httpx.AsyncClient."""
        client = MagicMock(spec=httpx.AsyncClient)
        client.get = AsyncMock(return_value=mock_response(200, discovery_response()))
        return client

    @pytest.fixture
    def service(self, http_client: MagicMock) -> SMARTDiscoveryService:
        return SMARTDiscoveryService(http_client)

    @pytest.mark.asyncio
    async def test_resolve_fetches_well_known_document(self, service: SMARTDiscoveryService, http_client: MagicMock) -> None:
        """Test resolve() fetches the well-known document below the FHIR base."""
        doc = await service.resolve("https://fhir.example.com/r4")

        assert doc.token_endpoint == TOKEN_ENDPOINT
        http_client.get.assert_called_once_with(
            "https://fhir.example.com/r4/.well-known/smart-configuration",
            headers={"Accept": "application/json"},
        )

    @pytest.mark.asyncio
    async def test_resolve_from_url_fetches_verbatim(self, service: SMARTDiscoveryService, http_client: MagicMock) -> None:
        """Test resolve_from_url() does not rewrite the URL."""
        metadata_url = "https://auth.example.com/.well-known/oauth-authorization-server?tenant=a"

        await service.resolve_from_url(metadata_url)

        http_client.get.assert_called_once_with(metadata_url, headers={"Accept": "application/json"})

    @pytest.mark.asyncio
    async def test_resolve_is_stateless(self, service: SMARTDiscoveryService, http_client: MagicMock) -> None:
        """Test every call goes to the network (caching is the caller's job)."""
        await service.resolve("https://fhir.example.com/r4")
        await service.resolve("https://fhir.example.com/r4")

        assert http_client.get.call_count == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [301, 404, 500, 503])
    async def test_non_2xx_raises_discovery_error(self, service: SMARTDiscoveryService, http_client: MagicMock, status_code: int) -> None:
        """Test non-2xx statuses raise DiscoveryError with the status code."""
        http_client.get.return_value = mock_response(status_code, {"error": "nope"})

        with pytest.raises(DiscoveryError) as exc_info:
            await service.resolve("https://fhir.example.com/r4")

        assert exc_info.value.status_code == status_code
        assert exc_info.value.url == "https://fhir.example.com/r4/.well-known/smart-configuration"

    @pytest.mark.asyncio
    async def test_invalid_json_raises_discovery_error(self, service: SMARTDiscoveryService, http_client: MagicMock) -> None:
        """Test an unparseable body raises DiscoveryError."""
        http_client.get.return_value = mock_response(200, ValueError("Expecting value"), text="<html>")

        with pytest.raises(DiscoveryError, match="Invalid SMART configuration document"):
            await service.resolve("https://fhir.example.com/r4")

    @pytest.mark.asyncio
    async def test_non_object_json_raises_discovery_error(self, service: SMARTDiscoveryService, http_client: MagicMock) -> None:
        """Test a JSON array body raises DiscoveryError."""
        http_client.get.return_value = mock_response(200, [TOKEN_ENDPOINT])

        with pytest.raises(DiscoveryError):
            await service.resolve("https://fhir.example.com/r4")

    @pytest.mark.asyncio
    async def test_missing_token_endpoint_raises_discovery_error(self, service: SMARTDiscoveryService, http_client: MagicMock) -> None:
        """Test a document without token_endpoint raises DiscoveryError."""
        http_client.get.return_value = mock_response(200, {"capabilities": ["permission-v2"]})

        with pytest.raises(DiscoveryError, match="token_endpoint"):
            await service.resolve("https://fhir.example.com/r4")

    @pytest.mark.asyncio
    async def test_transport_error_raises_discovery_error(self, service: SMARTDiscoveryService, http_client: MagicMock) -> None:
        """Test connection failures raise DiscoveryError."""
        http_client.get.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(DiscoveryError, match="request failed") as exc_info:
            await service.resolve("https://fhir.example.com/r4")

        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_timeout_raises_discovery_error(self, service: SMARTDiscoveryService, http_client: MagicMock) -> None:
        """Test timeouts raise DiscoveryError."""
        http_client.get.side_effect = httpx.ReadTimeout("timed out")

        with pytest.raises(DiscoveryError, match="timed out"):
            await service.resolve("https://fhir.example.com/r4")
