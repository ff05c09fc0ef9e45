"""
Prometheus metrics for monitoring.

Disabled unless ThreeCommasSettings.enable_metrics is set.
"""

from typing import Optional
import logging

from prometheus_client import Counter, Histogram, start_http_server

logger = logging.getLogger(__name__)


class Metrics:
    """
    Prometheus metrics collector.

    Tracks:
    - API request count and latency
    - Stream reconnects
    - Stream messages delivered
    """

    def __init__(self, enabled: bool = True, port: int = 9090):
        """
        Initialize metrics.

        Args:
            enabled: Enable metrics collection
            port: Metrics HTTP server port
        """
        self.enabled = enabled

        if not self.enabled:
            return

        self.api_requests = Counter(
            'threecommas_api_requests_total',
            'Total API requests',
            ['method', 'version', 'status']
        )

        self.api_latency = Histogram(
            'threecommas_api_latency_seconds',
            'API request latency',
            ['method', 'version']
        )

        self.stream_reconnects = Counter(
            'threecommas_stream_reconnects_total',
            'Streaming reconnects after abnormal closure'
        )

        self.stream_messages = Counter(
            'threecommas_stream_messages_total',
            'Inbound streaming messages'
        )

        try:
            start_http_server(port)
            logger.info(f"Metrics server started on port {port}")
        except OSError as e:
            logger.error(f"Failed to start metrics server: {e}")

    def track_api_request(self, method: str, version: int, status: str) -> None:
        """Record API request."""
        if self.enabled:
            self.api_requests.labels(method=method, version=str(version), status=status).inc()

    def track_api_latency(self, method: str, version: int, duration: float) -> None:
        """Record API latency."""
        if self.enabled:
            self.api_latency.labels(method=method, version=str(version)).observe(duration)

    def track_reconnect(self) -> None:
        if self.enabled:
            self.stream_reconnects.inc()

    def track_message(self) -> None:
        if self.enabled:
            self.stream_messages.inc()


# Global metrics instance
_metrics: Optional[Metrics] = None
_disabled = Metrics(enabled=False)


def get_metrics(enabled: bool = False, port: int = 9090) -> Metrics:
    """
    Get metrics instance.

    Collectors register once per process, so the enabled instance is shared.
    """
    global _metrics
    if not enabled:
        return _disabled
    if _metrics is None:
        _metrics = Metrics(enabled=True, port=port)
    return _metrics
