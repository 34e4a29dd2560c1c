"""
Prometheus metrics for image generation.
Collected in the default registry; exposing them is up to the host process.
"""
from prometheus_client import Counter, Histogram


# Counters
image_generations_total = Counter(
    "image_generations_total",
    "Total generate_image calls",
    ["model", "status"],  # status: success or error category
)

upstream_retries_total = Counter(
    "upstream_retries_total",
    "Retries scheduled after transient fal.ai failures",
    ["endpoint"],
)

reference_uploads_total = Counter(
    "reference_uploads_total",
    "Reference images uploaded to fal storage",
    ["kind"],  # data_url, local_file
)

# Histograms
image_generation_duration_seconds = Histogram(
    "image_generation_duration_seconds",
    "End-to-end generate_image duration",
    ["model"],
    buckets=[1, 5, 10, 30, 60, 120, 180, 300],
)
