"""AuthSettings value object.

Immutable SMART Backend Services configuration for one FHIR endpoint.
"""

import json
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import urlparse

from ..validation import Violation, ViolationAccumulator, ensure_valid

DEFAULT_TOKEN_EXPIRY_TOLERANCE = 120


@dataclass(frozen=True)
class AuthSettings:
    """Authentication settings for a FHIR server connection.

    Supports two kinds of client authentication:
    - Symmetric: client_id + client_secret (HTTP Basic header or form fields)
    - Asymmetric: client_id + private key JWK (RFC 7523 client assertion)

    The token endpoint is either discovered from the FHIR server's
    .well-known/smart-configuration document (use_smart) or given explicitly.
    An explicit token_endpoint always takes precedence over discovery.
    """

    enabled: bool = False
    use_smart: bool = True
    token_endpoint: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    private_key_jwk: str | Mapping[str, Any] | None = None
    scope: str | None = None
    token_expiry_tolerance: int = DEFAULT_TOKEN_EXPIRY_TOLERANCE
    use_form_for_basic_auth: bool = False

    @property
    def is_asymmetric(self) -> bool:
        return self.private_key_jwk is not None

    def validate(self) -> list[Violation]:
        """Check the configuration invariants.

        Returns:
            Violations found, empty if the settings are usable
        """
        acc = ViolationAccumulator()
        acc.check_that(self.token_expiry_tolerance >= 0, "must be zero or greater", "tokenExpiryTolerance")
        if self.token_endpoint is not None:
            acc.check_that(_is_absolute_http_url(self.token_endpoint), "must be an absolute http(s) URL", "tokenEndpoint")
        if not self.enabled:
            return acc.violations

        acc.check_that(bool(self.client_id), "must be supplied if auth is enabled", "clientId")
        acc.check_that(
            self.client_secret is not None or self.private_key_jwk is not None,
            "either clientSecret or privateKeyJWK must be supplied if auth is enabled",
        )
        acc.check_that(
            self.client_secret is None or self.private_key_jwk is None,
            "only one of clientSecret or privateKeyJWK can be supplied",
        )
        acc.check_that(
            self.use_smart or self.token_endpoint is not None,
            "must be supplied if SMART configuration is not used",
            "tokenEndpoint",
        )
        return acc.violations

    def to_dict(self) -> dict:
        """Serialize to the camelCase configuration surface."""
        return {
            "enabled": self.enabled,
            "useSMART": self.use_smart,
            "tokenEndpoint": self.token_endpoint,
            "clientId": self.client_id,
            "clientSecret": self.client_secret,
            "privateKeyJWK": self.private_key_jwk if isinstance(self.private_key_jwk, str) or self.private_key_jwk is None else json.dumps(dict(self.private_key_jwk)),
            "scope": self.scope,
            "tokenExpiryTolerance": self.token_expiry_tolerance,
            "useFormForBasicAuth": self.use_form_for_basic_auth,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AuthSettings":
        """Deserialize from the camelCase configuration surface.

        Flags accept booleans or the strings "true"/"false"; the tolerance accepts
        integers or integer strings.

        Raises:
            ConfigurationError: If a flag or the tolerance has an unusable value
        """
        acc = ViolationAccumulator()
        settings = cls(
            enabled=_coerce_bool(acc, data, "enabled", False),
            use_smart=_coerce_bool(acc, data, "useSMART", True),
            token_endpoint=data.get("tokenEndpoint"),
            client_id=data.get("clientId"),
            client_secret=data.get("clientSecret"),
            private_key_jwk=data.get("privateKeyJWK"),
            scope=data.get("scope"),
            token_expiry_tolerance=_coerce_int(acc, data, "tokenExpiryTolerance", DEFAULT_TOKEN_EXPIRY_TOLERANCE),
            use_form_for_basic_auth=_coerce_bool(acc, data, "useFormForBasicAuth", False),
        )
        ensure_valid(acc.violations, "Invalid SMART authentication configuration")
        return settings

    @classmethod
    def disabled(cls) -> "AuthSettings":
        """Factory method for unauthenticated access."""
        return cls(enabled=False)

    @classmethod
    def symmetric(
        cls,
        client_id: str,
        client_secret: str,
        *,
        token_endpoint: str | None = None,
        scope: str | None = None,
        use_form_for_basic_auth: bool = False,
        token_expiry_tolerance: int = DEFAULT_TOKEN_EXPIRY_TOLERANCE,
    ) -> "AuthSettings":
        """Factory method for shared-secret authentication."""
        return cls(
            enabled=True,
            use_smart=token_endpoint is None,
            token_endpoint=token_endpoint,
            client_id=client_id,
            client_secret=client_secret,
            scope=scope,
            use_form_for_basic_auth=use_form_for_basic_auth,
            token_expiry_tolerance=token_expiry_tolerance,
        )

    @classmethod
    def asymmetric(
        cls,
        client_id: str,
        private_key_jwk: str | Mapping[str, Any],
        *,
        token_endpoint: str | None = None,
        scope: str | None = None,
        token_expiry_tolerance: int = DEFAULT_TOKEN_EXPIRY_TOLERANCE,
    ) -> "AuthSettings":
        """Factory method for private key JWT authentication."""
        return cls(
            enabled=True,
            use_smart=token_endpoint is None,
            token_endpoint=token_endpoint,
            client_id=client_id,
            private_key_jwk=private_key_jwk,
            scope=scope,
            token_expiry_tolerance=token_expiry_tolerance,
        )


def _is_absolute_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _coerce_bool(acc: ViolationAccumulator, data: Mapping[str, Any], key: str, default: bool) -> bool:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    acc.add_violation(f"must be a boolean (true or false), got {value!r}", key)
    return default


def _coerce_int(acc: ViolationAccumulator, data: Mapping[str, Any], key: str, default: int) -> int:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    acc.add_violation(f"must be an integer number of seconds, got {value!r}", key)
    return default
