from .credential_factory import CredentialFactory, TokenProvider
from .token_cache import CacheState, TokenCache

__all__ = [
    "CredentialFactory",
    "TokenProvider",
    "TokenCache",
    "CacheState",
]
