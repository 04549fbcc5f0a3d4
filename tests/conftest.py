"""Pytest configuration and shared fixtures for all tests.

This module provides:
- Test configuration and markers
- A controllable clock
- RSA and EC private keys with their JWK representations
"""

import json
from typing import Any

import pytest
from _pytest.config import Config
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from jwt.algorithms import ECAlgorithm, RSAAlgorithm

from tests.fixtures import FakeClock

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config: Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (wire the factory end to end over a mock transport)")
    config.addinivalue_line("markers", "asyncio: Async tests")


# ============================================================================
# CLOCK FIXTURES
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    """Provide a fake clock starting at a fixed instant."""
    return FakeClock()


# ============================================================================
# KEY MATERIAL FIXTURES
# ============================================================================


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_jwk(rsa_private_key: rsa.RSAPrivateKey) -> dict[str, Any]:
    """Private RSA key as a JWK dict (no alg, with kid)."""
    jwk_dict = json.loads(RSAAlgorithm.to_jwk(rsa_private_key))
    jwk_dict.pop("alg", None)
    jwk_dict["kid"] = "rsa-test-kid"
    return jwk_dict


@pytest.fixture(scope="session")
def ec_private_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP384R1())


@pytest.fixture(scope="session")
def ec_jwk(ec_private_key: ec.EllipticCurvePrivateKey) -> dict[str, Any]:
    """Private P-384 EC key as a JWK dict (no alg, no kid)."""
    jwk_dict = json.loads(ECAlgorithm.to_jwk(ec_private_key))
    jwk_dict.pop("alg", None)
    jwk_dict.pop("kid", None)
    return jwk_dict
