from prometheus_client import Counter, Histogram

# Low-cardinality labels only: never put keys or bucket names in a label
TRANSFERS = Counter(
    "s3wagon_transfers_total",
    "Completed and failed transfers",
    ["operation", "strategy", "outcome"],
)

TRANSFER_BYTES = Counter(
    "s3wagon_transfer_bytes_total",
    "Bytes moved by successful transfers",
    ["operation"],
)

TRANSFER_LATENCY = Histogram(
    "s3wagon_transfer_duration_seconds",
    "Transfer latency in seconds",
    ["operation", "strategy"],
)

PART_RETRIES = Counter(
    "s3wagon_multipart_part_retries_total",
    "Multipart part uploads that were retried",
)


def record_transfer(
    operation: str, strategy: str, outcome: str, *, size: int = 0, seconds: float = 0.0
) -> None:
    TRANSFERS.labels(operation=operation, strategy=strategy, outcome=outcome).inc()
    if outcome == "success":
        TRANSFER_BYTES.labels(operation=operation).inc(size)
        TRANSFER_LATENCY.labels(operation=operation, strategy=strategy).observe(seconds)
