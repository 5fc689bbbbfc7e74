"""Prometheus metrics for alert evaluation and delivery"""
from prometheus_client import Counter, Gauge, Histogram

# Counters
passes_total = Counter(
    'trunklink_passes_total',
    'Total evaluation passes run'
)

pass_failures = Counter(
    'trunklink_pass_failures_total',
    'Evaluation passes that ended with an unexpected error'
)

fetch_failures = Counter(
    'trunklink_fetch_failures_total',
    'Failed fetches from the location data source'
)

alerts_emitted = Counter(
    'trunklink_alerts_emitted_total',
    'Alerts emitted by the engines',
    ['kind']
)

deliveries = Counter(
    'trunklink_deliveries_total',
    'Push delivery attempts by result',
    ['status']
)

destinations_removed = Counter(
    'trunklink_destinations_removed_total',
    'Destinations removed after a permanent delivery failure'
)

# Histograms
pass_duration = Histogram(
    'trunklink_pass_duration_seconds',
    'Time spent on one evaluation pass'
)

# Gauges
registered_subscribers = Gauge(
    'trunklink_registered_subscribers',
    'Number of registered push destinations'
)

tracked_entities = Gauge(
    'trunklink_tracked_entities',
    'Number of elephants seen in the last fetch'
)
