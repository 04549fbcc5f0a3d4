"""Observability utilities and metrics."""

from .metrics import discovery_failures, discovery_fetches, token_cache_hits, token_cache_refreshes, token_exchange_failures, token_exchange_time, token_exchanges

__all__ = [
    # Discovery metrics
    "discovery_fetches",
    "discovery_failures",
    # Token exchange metrics
    "token_exchanges",
    "token_exchange_failures",
    "token_exchange_time",
    # Token cache metrics
    "token_cache_hits",
    "token_cache_refreshes",
]
