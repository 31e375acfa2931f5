"""
Prometheus metrics for the booking engine.

Service timings are fed by the @measure_operation decorator; lock and
external-sync counters are recorded by the coordinators directly.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "drivebook_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "drivebook_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "drivebook_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_lock_total = Counter(
    "drivebook_booking_lock_total",
    "Booking lock operations by outcome",
    ["action", "outcome"],  # acquire|release x success|blocked|error|redis_unavailable|not_found
    registry=REGISTRY,
)

external_sync_total = Counter(
    "drivebook_external_sync_total",
    "External calendar side effects by outcome",
    ["operation", "outcome"],  # create|delete x success|failed|skipped
    registry=REGISTRY,
)

notifications_total = Counter(
    "drivebook_notifications_total",
    "Notification dispatches by kind and outcome",
    ["kind", "outcome"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: str | None = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'BookingService')
            operation: Operation/method name (e.g., 'create_booking')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_booking_lock(action: str, outcome: str) -> None:
        booking_lock_total.labels(action=action, outcome=outcome).inc()

    @staticmethod
    def record_external_sync(operation: str, outcome: str) -> None:
        external_sync_total.labels(operation=operation, outcome=outcome).inc()

    @staticmethod
    def record_notification(kind: str, outcome: str) -> None:
        notifications_total.labels(kind=kind, outcome=outcome).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Render all metrics in the Prometheus text exposition format."""
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
