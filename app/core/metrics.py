"""Prometheus metrics for monitoring"""
from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry
import time
from functools import wraps
from typing import Callable

registry = CollectorRegistry()

request_count = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status'],
    registry=registry
)

request_duration = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=registry
)

db_operations = Counter(
    'db_operations_total',
    'Total database units of work',
    ['operation', 'status'],
    registry=registry
)

db_operation_duration = Histogram(
    'db_operation_duration_seconds',
    'Database unit of work duration in seconds',
    ['operation'],
    registry=registry
)

sequence_allocations = Counter(
    'sequence_allocations_total',
    'Identifier sequence allocations',
    ['kind', 'status'],
    registry=registry
)

quotes_converted = Counter(
    'quotes_converted_total',
    'Quotes accepted and converted into shipments',
    registry=registry
)

conversion_failures = Counter(
    'quote_conversion_failures_total',
    'Failed quote conversions',
    ['reason'],
    registry=registry
)

shipment_status_updates = Counter(
    'shipment_status_updates_total',
    'Shipment status updates',
    ['status'],
    registry=registry
)

tracking_events_appended = Counter(
    'tracking_events_appended_total',
    'Tracking events written',
    ['source'],
    registry=registry
)

rate_limit_exceeded = Counter(
    'rate_limit_exceeded_total',
    'Total rate limit exceeded events',
    ['user_id'],
    registry=registry
)

notification_deliveries = Counter(
    'notification_deliveries_total',
    'Total notification delivery attempts',
    ['template', 'status'],
    registry=registry
)

notification_duration = Histogram(
    'notification_delivery_duration_seconds',
    'Notification delivery duration in seconds',
    ['status'],
    registry=registry
)

audit_logs_created = Counter(
    'audit_logs_created_total',
    'Total audit logs created',
    ['action'],
    registry=registry
)

redis_connected = Gauge(
    'redis_connected',
    'Redis connection status (1=connected, 0=disconnected)',
    registry=registry
)

db_connected = Gauge(
    'db_connected',
    'Database connection status (1=connected, 0=disconnected)',
    registry=registry
)


def track_db_operation(operation: str):
    """Decorator to track database unit-of-work metrics"""
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                result = await func(*args, **kwargs)
                db_operations.labels(operation=operation, status='success').inc()
                return result
            except Exception:
                db_operations.labels(operation=operation, status='error').inc()
                raise
            finally:
                db_operation_duration.labels(operation=operation).observe(time.time() - start_time)
        return wrapper
    return decorator


def get_metrics_text() -> str:
    """Generate Prometheus metrics in text format"""
    from prometheus_client import generate_latest
    return generate_latest(registry).decode('utf-8')
