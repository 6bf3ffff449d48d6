"""Self-monitoring metrics for the ingestion paths, using prometheus_client."""
from prometheus_client import CollectorRegistry, Counter, Histogram


class IngestMetrics:
    """Counts which append path every sample took."""

    def __init__(self, registry=None, prefix=""):
        if registry is None:
            # Use a custom registry so repeated harness runs never collide
            registry = CollectorRegistry()
        self.registry = registry

        self.appends_total = Counter(
            f"{prefix}ingest_appends_total",
            "Total number of appended samples by append path",
            ["path"],
            registry=registry
        )

        self.fallbacks_total = Counter(
            f"{prefix}ingest_fast_append_fallbacks_total",
            "Fast appends that failed and fell back to a full append",
            registry=registry
        )

        self.series_total = Counter(
            f"{prefix}ingest_series_total",
            "Total number of ingested series",
            registry=registry
        )

        self.commits_total = Counter(
            f"{prefix}ingest_commits_total",
            "Total number of append session commits by outcome",
            ["outcome"],
            registry=registry
        )

        self.commit_duration_seconds = Histogram(
            f"{prefix}ingest_commit_duration_seconds",
            "Duration of each commit in seconds",
            buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
            registry=registry
        )

    def record_append(self, path: str):
        """Record one appended sample."""
        self.appends_total.labels(path=path).inc()

    def record_fallback(self):
        self.fallbacks_total.inc()

    def record_series(self):
        self.series_total.inc()

    def record_commit(self, outcome: str, duration: float):
        """Record commit outcome and duration."""
        self.commits_total.labels(outcome=outcome).inc()
        self.commit_duration_seconds.observe(duration)

    def value(self, name: str, labels=None) -> float:
        """Current sample value from the registry, 0.0 when unset."""
        value = self.registry.get_sample_value(name, labels or {})
        return value if value is not None else 0.0
