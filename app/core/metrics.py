"""
Prometheus metrics for monitoring.

Metrics collected:
- HTTP request count, duration and in-flight gauge
- Upload volume, quota rejections and storage held per organization
- Audit writes and audit write failures
- Authorization denials per policy action
- Background job outcomes
"""

import time
from functools import wraps

from prometheus_client import Counter, Gauge, Histogram, Info

# Application info (populated in the lifespan hook)
app_info = Info("filevault_app", "FileVault application information")

# HTTP metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 60.0, 600.0),
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests in progress",
    ["method", "endpoint"],
)

# Storage metrics
files_uploaded_total = Counter(
    "files_uploaded_total",
    "Total files accepted for storage",
    ["organization_id"],
)

upload_bytes_total = Counter(
    "upload_bytes_total",
    "Total bytes accepted for storage",
)

quota_rejections_total = Counter(
    "quota_rejections_total",
    "Uploads or restores rejected by the storage quota",
    ["organization_id"],
)

orphan_cleanup_failures_total = Counter(
    "orphan_cleanup_failures_total",
    "Blobs that could not be removed after a failed upload",
)

# Audit metrics
audit_entries_total = Counter(
    "audit_entries_total",
    "Audit entries written",
    ["action"],
)

audit_write_failures_total = Counter(
    "audit_write_failures_total",
    "Audit entries that could not be written",
)

# Access control
access_denied_total = Counter(
    "access_denied_total",
    "Authorization denials",
    ["action"],
)

# Background jobs
task_duration_seconds = Histogram(
    "task_duration_seconds",
    "Background task duration in seconds",
    ["task_name", "status"],
    buckets=(0.1, 1.0, 5.0, 30.0, 60.0, 300.0),
)

reminders_notified_total = Counter(
    "reminders_notified_total",
    "Reminders moved from pending to notified",
)

trash_files_purged_total = Counter(
    "trash_files_purged_total",
    "Files permanently removed by the trash retention job",
)

# Service-layer operations (uploads, listings, stats)
operation_duration_seconds = Histogram(
    "operation_duration_seconds",
    "Service operation duration in seconds",
    ["operation", "outcome"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0),
)


def track_time(metric: Histogram, labels: dict | None = None):
    """
    Decorator to track coroutine execution time.

    Usage:
        @track_time(task_duration_seconds, {"task_name": "x", "status": "ok"})
        async def job():
            ...
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                return await func(*args, **kwargs)
            finally:
                duration = time.time() - start_time
                if labels:
                    metric.labels(**labels).observe(duration)
                else:
                    metric.observe(duration)
        return wrapper
    return decorator

organization_storage_bytes = Gauge(
    "organization_storage_bytes",
    "Bytes held by active files, refreshed on every scrape",
    ["organization_id"],
)
