"""OAuth2 Client Credentials Token Exchange.

Performs the client_credentials grant against a token endpoint and turns the
response into a CachedToken with an absolute, tolerance-adjusted expiry.

Key Features:
- Works with any ClientCredentials variant (shared secret or private key JWT)
- Strict response validation (access_token and a positive expires_in are required)
- No retries: transport retry policy belongs to the injected httpx client
- Comprehensive observability (tracing, metrics, logging)

Usage:
    client = OAuth2TokenExchangeClient(http_client)
    token = await client.exchange(
        token_endpoint="https://auth.example.com/token",
        credentials=SymmetricClientCredentials("my-client", "secret"),  # pragma: allowlist secret
        scope="system/*.read",
    )
"""

import logging
import time
from typing import Any, Callable

import httpx
from opentelemetry import trace

from fhir_auth.domain.errors import TokenRequestError
from fhir_auth.domain.models import DEFAULT_TOKEN_EXPIRY_TOLERANCE, CachedToken
from fhir_auth.observability import token_exchange_failures, token_exchange_time, token_exchanges

from .client_auth import ClientCredentials

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

CLIENT_CREDENTIALS_GRANT_TYPE = "client_credentials"


class OAuth2TokenExchangeClient:
    """Client for the OAuth2 client credentials grant.

    Example:
        client = OAuth2TokenExchangeClient(http_client)
        token = await client.exchange(token_endpoint, credentials, scope="system/*.read")
        headers = {"Authorization": f"{token.token_type} {token.access_token}"}
    """

    def __init__(self, http_client: httpx.AsyncClient, clock: Callable[[], float] = time.time) -> None:
        """Initialize the exchange client.

        Args:
            http_client: Transport used for token requests (owned by the caller)
            clock: Returns the current epoch time in seconds
        """
        self._http_client = http_client
        self._clock = clock

    async def exchange(
        self,
        token_endpoint: str,
        credentials: ClientCredentials,
        scope: str | None = None,
        expiry_tolerance: int = DEFAULT_TOKEN_EXPIRY_TOLERANCE,
    ) -> CachedToken:
        """Request a new access token.

        Args:
            token_endpoint: OAuth2 token endpoint
            credentials: Client authentication to include in the request
            scope: Space-separated scopes to request (omitted when empty)
            expiry_tolerance: Seconds subtracted from the reported lifetime

        Returns:
            CachedToken with the access token and its adjusted expiry

        Raises:
            TokenRequestError: If the request fails or the response is invalid
            KeyMaterialError: If a client assertion cannot be signed
        """
        with tracer.start_as_current_span("oauth2_token_exchange.exchange") as span:
            span.set_attribute("http.url", token_endpoint)
            span.set_attribute("oauth2.client_id", credentials.client_id)
            span.set_attribute("oauth2.auth_method", credentials.auth_method)

            client_auth = credentials.build(token_endpoint)
            data: dict[str, str] = {"grant_type": CLIENT_CREDENTIALS_GRANT_TYPE}
            if scope:
                data["scope"] = scope
            data.update(client_auth.form)
            headers = {
                "Content-Type": "application/x-www-form-urlencoded",
                "Accept": "application/json",
                **client_auth.headers,
            }

            logger.info(
                "Requesting client credentials token",
                extra={
                    "client_id": credentials.client_id,
                    "token_endpoint": token_endpoint,
                    "auth_method": credentials.auth_method,
                    "scope": scope,
                },
            )

            now = self._clock()
            started = time.perf_counter()
            token_exchanges.add(1, {"auth_method": credentials.auth_method})
            try:
                response = await self._http_client.post(token_endpoint, data=data, headers=headers)
            except httpx.TimeoutException as e:
                token_exchange_failures.add(1, {"reason": "timeout"})
                logger.error(
                    "Client credentials token request timed out",
                    extra={"client_id": credentials.client_id, "token_endpoint": token_endpoint},
                )
                raise TokenRequestError(message=f"Timeout requesting token from {token_endpoint}", token_endpoint=token_endpoint) from e
            except httpx.RequestError as e:
                token_exchange_failures.add(1, {"reason": "transport"})
                logger.error(
                    "Client credentials token request network error",
                    extra={"client_id": credentials.client_id, "token_endpoint": token_endpoint},
                )
                raise TokenRequestError(message=f"Network error requesting token: {e}", token_endpoint=token_endpoint) from e
            finally:
                token_exchange_time.record((time.perf_counter() - started) * 1000)

            span.set_attribute("http.status_code", response.status_code)

            if not 200 <= response.status_code < 300:
                error = _error_from_response(response, token_endpoint, credentials.client_id)
                token_exchange_failures.add(1, {"reason": "status"})
                logger.error(
                    "Client credentials token request failed",
                    extra={
                        "client_id": credentials.client_id,
                        "status_code": response.status_code,
                        "error_code": error.error_code,
                        "error_description": error.error_description,
                    },
                )
                span.set_attribute("oauth2.error", str(error))
                raise error

            try:
                token = parse_token_response(response.json(), now=now, expiry_tolerance=expiry_tolerance)
            except ValueError as e:
                token_exchange_failures.add(1, {"reason": "invalid_response"})
                logger.error(
                    "Invalid client credentials token response",
                    extra={"client_id": credentials.client_id, "token_endpoint": token_endpoint, "error": str(e)},
                )
                raise TokenRequestError(
                    message=f"Invalid token response: {e}",
                    token_endpoint=token_endpoint,
                    status_code=response.status_code,
                    body=response.text,
                ) from e

            span.set_attribute("oauth2.expires_in", token.expires_at - now)
            logger.info(
                "Client credentials token acquired",
                extra={
                    "client_id": credentials.client_id,
                    "valid_for": token.remaining(now),
                    "scope": token.scope,
                },
            )
            return token


def parse_token_response(token_data: Any, now: float, expiry_tolerance: int = DEFAULT_TOKEN_EXPIRY_TOLERANCE) -> CachedToken:
    """Validate a token endpoint response body.

    expires_at is now + expires_in - expiry_tolerance. A non-positive remaining
    lifetime yields a token that is already stale (expires_at == now) rather
    than an error, so the next lookup refreshes it.

    Args:
        token_data: Parsed JSON body
        now: Epoch seconds at which the request was issued
        expiry_tolerance: Seconds subtracted from the reported lifetime

    Returns:
        CachedToken built from the response

    Raises:
        ValueError: If required fields are missing or invalid
    """
    if not isinstance(token_data, dict):
        raise ValueError("Token response is not a JSON object")

    access_token = token_data.get("access_token")
    if not access_token or not isinstance(access_token, str):
        raise ValueError("Token response missing required field: access_token")

    expires_in = token_data.get("expires_in")
    if expires_in is None:
        raise ValueError("Token response missing required field: expires_in")
    if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)) or expires_in <= 0:
        raise ValueError(f"Token response expires_in must be a positive number, got {expires_in!r}")

    token_type = token_data.get("token_type") or "Bearer"
    scope = token_data.get("scope")

    lifetime = expires_in - expiry_tolerance
    return CachedToken(
        access_token=access_token,
        expires_at=now + lifetime if lifetime > 0 else now,
        token_type=str(token_type),
        scope=str(scope) if scope is not None else None,
    )


def _error_from_response(response: httpx.Response, token_endpoint: str, client_id: str) -> TokenRequestError:
    error_data: dict[str, Any] = {}
    try:
        parsed = response.json()
        if isinstance(parsed, dict):
            error_data = parsed
    except ValueError:
        logger.debug("Token error response is not JSON", extra={"status_code": response.status_code})

    return TokenRequestError(
        message=f"Client credentials token request failed for {client_id}",
        token_endpoint=token_endpoint,
        status_code=response.status_code,
        body=response.text,
        error_code=error_data.get("error"),
        error_description=error_data.get("error_description"),
    )
