"""
Prometheus counters exposed on /metrics.
"""
from prometheus_client import Counter

ASSESSMENTS_TOTAL = Counter(
    "retention_assessments_total",
    "Risk assessments served, by producing path",
    ["source"],
)

ALERTS_TOTAL = Counter(
    "retention_alerts_total",
    "Alerts raised by the engine",
    ["alert_type", "severity", "persisted"],
)

TEXT_GENERATION_FAILURES_TOTAL = Counter(
    "retention_text_generation_failures_total",
    "External text-generation calls that failed or returned unusable output",
    ["component"],
)

PERSISTENCE_FAILURES_TOTAL = Counter(
    "retention_persistence_failures_total",
    "Writes to the store that failed without failing the request",
    ["record"],
)
