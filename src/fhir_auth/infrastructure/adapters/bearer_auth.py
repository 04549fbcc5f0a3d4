"""httpx authentication hook attaching SMART bearer tokens to requests."""

from typing import AsyncGenerator, Generator, Protocol

import httpx


class BearerTokenSource(Protocol):
    async def current_token(self) -> str: ...


class BearerTokenAuth(httpx.Auth):
    """Sets ``Authorization: Bearer <token>`` on every outgoing request.

    The token source is asked for a token before each request; it is expected
    to serve cached tokens cheaply and refresh them when they go stale.

    Example:
        provider = await factory.create_credentials(fhir_url, settings)
        async with httpx.AsyncClient(auth=BearerTokenAuth(provider)) as client:
            await client.get(f"{fhir_url}/Patient")
    """

    def __init__(self, token_source: BearerTokenSource) -> None:
        self._token_source = token_source

    def sync_auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        raise RuntimeError("BearerTokenAuth requires an httpx.AsyncClient")
        yield request  # pragma: no cover

    async def async_auth_flow(self, request: httpx.Request) -> AsyncGenerator[httpx.Request, httpx.Response]:
        token = await self._token_source.current_token()
        request.headers["Authorization"] = f"Bearer {token}"
        yield request
