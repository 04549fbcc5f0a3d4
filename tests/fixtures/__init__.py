from .factories import CLIENT_ID, CLIENT_SECRET, FHIR_BASE_URL, TOKEN_ENDPOINT, AuthSettingsFactory, FakeClock, discovery_response, mock_response, token_response

__all__ = [
    "AuthSettingsFactory",
    "FakeClock",
    "discovery_response",
    "mock_response",
    "token_response",
    "CLIENT_ID",
    "CLIENT_SECRET",
    "FHIR_BASE_URL",
    "TOKEN_ENDPOINT",
]
