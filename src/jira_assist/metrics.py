"""Prometheus metrics for enhancement and Jira calls."""

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram


class EnhancementMetrics:
    """Prometheus metrics for the enhancement service.

    Pass a fresh CollectorRegistry to get an isolated set of metrics
    (the default registry only accepts one instance per process).
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.enhancements_total = Counter(
            "jira_assist_enhancements_total",
            "Enhancement results by source",
            ["source"],
            registry=registry,
        )
        self.generation_duration_seconds = Histogram(
            "jira_assist_generation_duration_seconds",
            "Generation service chat duration",
            registry=registry,
        )
        self.generation_failures_total = Counter(
            "jira_assist_generation_failures_total",
            "Generation attempts that ended in the rule-based fallback",
            ["reason"],
            registry=registry,
        )
        self.jira_requests_total = Counter(
            "jira_assist_jira_requests_total",
            "Jira API calls by operation and outcome",
            ["operation", "status"],
            registry=registry,
        )

    def record_enhancement(self, source: str):
        """Record an enhancement result."""
        self.enhancements_total.labels(source=source).inc()

    def record_generation_duration(self, duration: float):
        """Record chat completion timing."""
        self.generation_duration_seconds.observe(duration)

    def record_generation_failure(self, reason: str):
        """Record why the generation path was abandoned."""
        self.generation_failures_total.labels(reason=reason).inc()

    def record_jira_request(self, operation: str, success: bool):
        """Record a Jira API call."""
        status = "success" if success else "error"
        self.jira_requests_total.labels(operation=operation, status=status).inc()
