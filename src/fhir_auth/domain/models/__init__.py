from .auth_settings import DEFAULT_TOKEN_EXPIRY_TOLERANCE, AuthSettings
from .cached_token import CachedToken, CacheKey

__all__ = [
    "AuthSettings",
    "DEFAULT_TOKEN_EXPIRY_TOLERANCE",
    "CachedToken",
    "CacheKey",
]
