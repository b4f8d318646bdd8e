from prometheus_client import Counter, Histogram, make_asgi_app

# Low-cardinality labels: route templates, never raw paths or object keys
REQUESTS = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "route", "status"],
)

LATENCY = Histogram(
    "http_request_duration_seconds",
    "Request latency in seconds",
    ["method", "route"],
)

REQUEST_BYTES = Histogram(
    "http_request_body_bytes",
    "Declared body size of upload requests",
    ["route"],
    buckets=(1024, 16 * 1024, 256 * 1024, 1024**2, 8 * 1024**2, 64 * 1024**2),
)

OBJECT_OPERATIONS = Counter(
    "object_operations_total",
    "Object storage operations by outcome",
    ["operation", "bucket", "outcome"],
)

UPLOADED_BYTES = Counter(
    "object_uploaded_bytes_total",
    "Bytes sent to object storage",
    ["bucket"],
)

metrics_app = make_asgi_app()
