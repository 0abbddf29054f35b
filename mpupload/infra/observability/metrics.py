from prometheus_client import CollectorRegistry, Counter, Histogram, write_to_textfile

# Dedicated registry: the CLI exports only upload metrics, not process/platform collectors
REGISTRY = CollectorRegistry(auto_describe=True)

UPLOADS = Counter(
    "multipart_uploads_total",
    "Multipart upload runs by outcome",
    ["outcome"],
    registry=REGISTRY,
)

PARTS = Counter(
    "multipart_parts_total",
    "Part uploads by status",
    ["status"],
    registry=REGISTRY,
)

PART_BYTES = Counter(
    "multipart_part_bytes_total",
    "Bytes sent in successfully uploaded parts",
    registry=REGISTRY,
)

ABORTS = Counter(
    "multipart_aborts_total",
    "Abort attempts by result",
    ["result"],
    registry=REGISTRY,
)

PART_LATENCY = Histogram(
    "multipart_part_upload_duration_seconds",
    "Part upload latency in seconds",
    registry=REGISTRY,
)


def export_textfile(path: str) -> None:
    """Write the upload registry in the node_exporter textfile format."""
    write_to_textfile(path, REGISTRY)
