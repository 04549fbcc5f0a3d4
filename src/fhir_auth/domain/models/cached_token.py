"""CachedToken and CacheKey value objects."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CacheKey:
    """Identifies a cached token.

    Derived from the authorization server, not the FHIR endpoint, so that several
    FHIR base URLs served by one authorization server share one token.
    """

    token_endpoint: str
    client_id: str

    def __str__(self) -> str:
        return f"{self.client_id}@{self.token_endpoint}"


@dataclass(frozen=True)
class CachedToken:
    """Access token obtained from a client credentials grant.

    Attributes:
        access_token: The OAuth2 access token
        expires_at: Absolute expiry (epoch seconds) with the expiry tolerance already subtracted
        token_type: Token type (usually "Bearer")
        scope: Granted scopes (space-separated string), if echoed by the server
    """

    access_token: str
    expires_at: float
    token_type: str = "Bearer"
    scope: str | None = None

    def is_stale(self, now: float) -> bool:
        """Check whether the token must be refreshed.

        Args:
            now: Current time in epoch seconds

        Returns:
            True once now has reached expires_at
        """
        return now >= self.expires_at

    def remaining(self, now: float) -> float:
        """Seconds of validity left (never negative)."""
        return max(0.0, self.expires_at - now)

    def __repr__(self) -> str:
        return f"CachedToken(token_type={self.token_type!r}, expires_at={self.expires_at!r}, scope={self.scope!r})"
