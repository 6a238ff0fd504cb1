"""Prometheus metrics exposed by the mail relay."""

from prometheus_client import CollectorRegistry, Counter, generate_latest


class MailMetrics:
    """Wrapper around the Prometheus registry used by the relay."""

    def __init__(self, registry: CollectorRegistry | None = None):
        """Create the counters inside the provided registry."""
        self.registry = registry or CollectorRegistry()
        self.sent = Counter("mailrelay_sent_total", "Total sent emails", registry=self.registry)
        self.errors = Counter("mailrelay_errors_total", "Total send errors", registry=self.registry)
        self.invalid = Counter(
            "mailrelay_invalid_items_total", "Batch items rejected before dispatch", registry=self.registry
        )
        self.rate_limited = Counter(
            "mailrelay_rate_limited_total", "Total requests rejected by the rate limiter", registry=self.registry
        )
        self.batches = Counter("mailrelay_batches_total", "Total processed batches", registry=self.registry)

    def inc_sent(self):
        self.sent.inc()

    def inc_error(self):
        self.errors.inc()

    def inc_invalid(self):
        self.invalid.inc()

    def inc_rate_limited(self):
        self.rate_limited.inc()

    def inc_batches(self):
        self.batches.inc()

    def generate_latest(self) -> bytes:
        """Return the latest metrics snapshot in Prometheus text format."""
        return generate_latest(self.registry)
