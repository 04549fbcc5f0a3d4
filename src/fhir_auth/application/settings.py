"""Environment-backed settings and logging configuration."""

import logging
import sys

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fhir_auth.domain.models import DEFAULT_TOKEN_EXPIRY_TOLERANCE, AuthSettings


class FhirAuthSettings(BaseSettings):
    """SMART Backend Services settings loaded from FHIR_AUTH_* environment variables.

    Only basic type coercion happens here; the SMART invariants are checked by
    AuthSettings.validate() when credentials are created.
    """

    model_config = SettingsConfigDict(
        env_prefix="FHIR_AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Authentication
    enabled: bool = Field(default=False, description="Enable SMART Backend Services authentication")
    use_smart: bool = Field(default=True, description="Discover the token endpoint from .well-known/smart-configuration")
    token_endpoint: str | None = Field(default=None, description="Explicit token endpoint (overrides discovery)")
    client_id: str | None = Field(default=None, description="Registered client ID")
    client_secret: str | None = Field(default=None, description="Client secret for symmetric authentication")
    private_key_jwk: str | None = Field(default=None, description="Private key (JWK JSON) for asymmetric authentication")
    scope: str | None = Field(default=None, description="Space-separated scopes to request (e.g. system/*.read)")
    token_expiry_tolerance: int = Field(
        default=DEFAULT_TOKEN_EXPIRY_TOLERANCE,
        description="Seconds before the reported expiry at which tokens are refreshed",
    )
    use_form_for_basic_auth: bool = Field(default=False, description="Send client_id/client_secret as form fields instead of HTTP Basic")

    # Transport
    http_timeout: float = Field(default=10.0, description="HTTP timeout for discovery and token requests, in seconds")

    # Logging
    log_level: str = Field(default="INFO", description="Log level used by configure_logging()")

    @field_validator("token_endpoint", "client_id", "client_secret", "private_key_jwk", "scope")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        """Treat empty environment values as unset."""
        if v is None or v.strip() == "":
            return None
        return v.strip()

    def to_auth_settings(self) -> AuthSettings:
        """Build the immutable AuthSettings consumed by CredentialFactory."""
        return AuthSettings(
            enabled=self.enabled,
            use_smart=self.use_smart,
            token_endpoint=self.token_endpoint,
            client_id=self.client_id,
            client_secret=self.client_secret,
            private_key_jwk=self.private_key_jwk,
            scope=self.scope,
            token_expiry_tolerance=self.token_expiry_tolerance,
            use_form_for_basic_auth=self.use_form_for_basic_auth,
        )


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure application-wide logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Set third-party loggers to WARNING to reduce noise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
