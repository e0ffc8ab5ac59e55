"""Prometheus metrics for rule evaluation."""

from prometheus_client import Counter, Histogram

RULE_EVALUATIONS = Counter(
    "conflogic_rule_evaluations_total",
    "Total number of rule evaluations",
    labelnames=["outcome"],
)

RULE_EVALUATION_LATENCY = Histogram(
    "conflogic_rule_evaluation_latency_seconds",
    "Rule evaluation latency in seconds",
    buckets=(0.0001, 0.00025, 0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1),
)

RULE_ERRORS = Counter(
    "conflogic_rule_errors_total",
    "Total number of rule evaluations aborted by an error",
    labelnames=["error_type"],
)
