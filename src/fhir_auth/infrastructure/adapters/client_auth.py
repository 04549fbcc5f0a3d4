"""Client authentication for the token endpoint.

Builds the client authentication part of a client credentials token request.
Two variants are supported, chosen by the credential material configured:

- SymmetricClientCredentials: shared secret, sent as an HTTP Basic header or as
  client_id/client_secret form fields (client_secret_basic / client_secret_post)
- AsymmetricClientCredentials: RFC 7523 private key JWT assertion signed with an
  RSA (RS256/RS384/RS512) or EC (ES256/ES384/ES512) key supplied as a JWK
  (private_key_jwt), as required by SMART Backend Services

Security Considerations:
- Assertions are built fresh per token request (unique jti, short expiry)
- Never logs secrets, keys or assertions, only metadata
"""

import base64
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol

import jwt

from fhir_auth.domain.errors import KeyMaterialError
from fhir_auth.domain.models import AuthSettings

logger = logging.getLogger(__name__)

JWT_BEARER_CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"

DEFAULT_ASSERTION_LIFETIME = 60
MAX_ASSERTION_LIFETIME = 300

RSA_ALGORITHMS = ("RS256", "RS384", "RS512")
EC_ALGORITHMS = ("ES256", "ES384", "ES512")

DEFAULT_RSA_ALGORITHM = "RS384"
EC_CURVE_ALGORITHMS = {
    "P-256": "ES256",
    "P-384": "ES384",
    "P-521": "ES512",
}


@dataclass(frozen=True)
class ClientAuthentication:
    """Client authentication contribution to a token request.

    Attributes:
        headers: Extra HTTP headers (e.g. Authorization: Basic ...)
        form: Extra form fields (client_id, client_secret, client_assertion...)
    """

    headers: Mapping[str, str] = field(default_factory=dict)
    form: Mapping[str, str] = field(default_factory=dict)


class ClientCredentials(Protocol):
    """Anything able to authenticate a client at a token endpoint."""

    @property
    def client_id(self) -> str: ...

    @property
    def auth_method(self) -> str: ...

    def build(self, token_endpoint: str) -> ClientAuthentication: ...


class SymmetricClientCredentials:
    """Shared secret client authentication."""

    def __init__(self, client_id: str, client_secret: str, use_form_for_basic_auth: bool = False) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._use_form = use_form_for_basic_auth

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def auth_method(self) -> str:
        return "client_secret_post" if self._use_form else "client_secret_basic"

    def build(self, token_endpoint: str) -> ClientAuthentication:
        if self._use_form:
            return ClientAuthentication(form={"client_id": self._client_id, "client_secret": self._client_secret})
        encoded = base64.b64encode(f"{self._client_id}:{self._client_secret}".encode("utf-8")).decode("ascii")
        return ClientAuthentication(headers={"Authorization": f"Basic {encoded}"})

    def __repr__(self) -> str:
        return f"SymmetricClientCredentials(client_id={self._client_id!r}, auth_method={self.auth_method!r})"


def parse_private_key_jwk(private_key_jwk: str | Mapping[str, Any]) -> dict[str, Any]:
    """Parse a JWK given as JSON text or as a mapping.

    Raises:
        KeyMaterialError: If the value is not a JSON object
    """
    if isinstance(private_key_jwk, str):
        try:
            parsed = json.loads(private_key_jwk)
        except ValueError as e:
            raise KeyMaterialError(message=f"Private key JWK is not valid JSON: {e}") from e
    else:
        parsed = private_key_jwk
    if not isinstance(parsed, Mapping):
        raise KeyMaterialError(message="Private key JWK must be a JSON object")
    return dict(parsed)


def select_signing_algorithm(jwk_data: Mapping[str, Any]) -> str:
    """Pick the assertion signing algorithm matching the key type.

    RSA keys use the JWK "alg" when it is an RS algorithm, else RS384.
    EC keys use the algorithm bound to their curve; an explicit "alg" must agree.

    Raises:
        KeyMaterialError: If the key type, curve or "alg" is not supported
    """
    kty = jwk_data.get("kty")
    alg = jwk_data.get("alg")

    if kty == "RSA":
        if alg is None:
            return DEFAULT_RSA_ALGORITHM
        if alg not in RSA_ALGORITHMS:
            raise KeyMaterialError(message=f"Unsupported algorithm for RSA key: {alg}")
        return alg

    if kty == "EC":
        crv = jwk_data.get("crv")
        curve_alg = EC_CURVE_ALGORITHMS.get(crv)  # type: ignore[arg-type]
        if curve_alg is None:
            raise KeyMaterialError(message=f"Unsupported EC curve: {crv}")
        if alg is not None and alg != curve_alg:
            raise KeyMaterialError(message=f"Algorithm {alg} does not match EC curve {crv}")
        return curve_alg

    if kty is None:
        raise KeyMaterialError(message="Private key JWK missing required field: kty")
    raise KeyMaterialError(message=f"Unsupported key type: {kty}")


class AsymmetricClientCredentials:
    """Private key JWT client authentication (RFC 7523).

    The JWK is parsed and validated at construction, so misconfigured keys fail
    before the first token request.

    Example:
        credentials = AsymmetricClientCredentials("my-client", private_key_jwk)
        auth = credentials.build("https://auth.example.com/token")
        # auth.form -> client_id, client_assertion_type, client_assertion
    """

    def __init__(
        self,
        client_id: str,
        private_key_jwk: str | Mapping[str, Any],
        assertion_lifetime: int = DEFAULT_ASSERTION_LIFETIME,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize asymmetric credentials.

        Args:
            client_id: Registered client ID (used as iss and sub)
            private_key_jwk: Private key in JWK form (JSON text or mapping)
            assertion_lifetime: Seconds until the assertion expires (at most 300)
            clock: Returns the current epoch time in seconds

        Raises:
            KeyMaterialError: If the JWK cannot be used for signing
            ValueError: If assertion_lifetime is out of range
        """
        if not 0 < assertion_lifetime <= MAX_ASSERTION_LIFETIME:
            raise ValueError(f"assertion_lifetime must be between 1 and {MAX_ASSERTION_LIFETIME} seconds")

        jwk_data = parse_private_key_jwk(private_key_jwk)
        self._algorithm = select_signing_algorithm(jwk_data)
        if "d" not in jwk_data:
            raise KeyMaterialError(message="Private key JWK missing private key material (d); a public key cannot sign assertions")

        try:
            self._signing_key = jwt.PyJWK(jwk_data, algorithm=self._algorithm)
        except (jwt.PyJWTError, ValueError, TypeError, KeyError) as e:
            raise KeyMaterialError(message=f"Invalid private key JWK: {e}") from e

        self._client_id = client_id
        self._key_id: str | None = jwk_data.get("kid")
        self._assertion_lifetime = assertion_lifetime
        self._clock = clock

        logger.debug(
            "Asymmetric client credentials configured",
            extra={"client_id": client_id, "algorithm": self._algorithm, "kid": self._key_id},
        )

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def auth_method(self) -> str:
        return "private_key_jwt"

    @property
    def algorithm(self) -> str:
        return self._algorithm

    @property
    def key_id(self) -> str | None:
        return self._key_id

    def build_assertion(self, token_endpoint: str) -> str:
        """Sign a new client assertion for the token endpoint.

        Args:
            token_endpoint: Audience of the assertion

        Returns:
            Compact JWT string

        Raises:
            KeyMaterialError: If signing fails
        """
        now = int(self._clock())
        claims = {
            "iss": self._client_id,
            "sub": self._client_id,
            "aud": token_endpoint,
            "iat": now,
            "exp": now + self._assertion_lifetime,
            "jti": str(uuid.uuid4()),
        }
        headers = {"kid": self._key_id} if self._key_id else None
        try:
            return jwt.encode(claims, self._signing_key.key, algorithm=self._algorithm, headers=headers)
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            raise KeyMaterialError(message=f"Failed to sign client assertion with {self._algorithm}: {e}") from e

    def build(self, token_endpoint: str) -> ClientAuthentication:
        return ClientAuthentication(
            form={
                "client_id": self._client_id,
                "client_assertion_type": JWT_BEARER_CLIENT_ASSERTION_TYPE,
                "client_assertion": self.build_assertion(token_endpoint),
            }
        )

    def __repr__(self) -> str:
        return f"AsymmetricClientCredentials(client_id={self._client_id!r}, algorithm={self._algorithm!r}, kid={self._key_id!r})"


def client_credentials_from_settings(settings: AuthSettings, clock: Callable[[], float] = time.time) -> ClientCredentials:
    """Select the client authentication variant for validated settings.

    Raises:
        KeyMaterialError: If the configured private key is unusable
        ValueError: If neither a secret nor a private key is configured
    """
    if not settings.client_id:
        raise ValueError("client_id is required for client authentication")
    if settings.private_key_jwk is not None:
        return AsymmetricClientCredentials(settings.client_id, settings.private_key_jwk, clock=clock)
    if settings.client_secret is not None:
        return SymmetricClientCredentials(settings.client_id, settings.client_secret, settings.use_form_for_basic_auth)
    raise ValueError("Either client_secret or private_key_jwk must be configured")
