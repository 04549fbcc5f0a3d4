"""Token acquisition metrics.

Defines OpenTelemetry metrics for:
- Discovery: SMART configuration fetches
- Token exchange: requests, failures and latency
- Token cache: hits and refreshes
"""

from opentelemetry import metrics

meter = metrics.get_meter(__name__)

# =============================================================================
# DISCOVERY METRICS
# =============================================================================

discovery_fetches = meter.create_counter(
    name="fhir_auth.discovery.fetches",
    description="Total SMART configuration documents fetched",
    unit="1",
)

discovery_failures = meter.create_counter(
    name="fhir_auth.discovery.failures",
    description="Total SMART configuration fetch failures",
    unit="1",
)

# =============================================================================
# TOKEN EXCHANGE METRICS
# =============================================================================

token_exchanges = meter.create_counter(
    name="fhir_auth.token.exchanges",
    description="Total client credentials token requests sent",
    unit="1",
)

token_exchange_failures = meter.create_counter(
    name="fhir_auth.token.exchange_failures",
    description="Total client credentials token requests that failed",
    unit="1",
)

token_exchange_time = meter.create_histogram(
    name="fhir_auth.token.exchange_time",
    description="Time to complete a token request",
    unit="ms",
)

# =============================================================================
# TOKEN CACHE METRICS
# =============================================================================

token_cache_hits = meter.create_counter(
    name="fhir_auth.token_cache.hits",
    description="Token lookups served from cache",
    unit="1",
)

token_cache_refreshes = meter.create_counter(
    name="fhir_auth.token_cache.refreshes",
    description="Token refreshes started (one per in-flight key)",
    unit="1",
)
