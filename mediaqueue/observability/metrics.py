# mediaqueue/observability/metrics.py
from fastapi import APIRouter
from starlette.responses import Response

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

router = APIRouter(tags=["observability"])

admission_counter = Counter(
    "mediaqueue_admissions_total",
    "Aantal aangeboden bestanden",
    ["result"],  # accepted|rejected|skipped
)

upload_counter = Counter(
    "mediaqueue_uploads_total",
    "Aantal transfers naar de upload service",
    ["result"],  # success|error|aborted
)

retry_counter = Counter(
    "mediaqueue_retries_total",
    "Aantal expliciete retries",
    ["result"],  # uploaded|rejected|failed
)

upload_size_hist = Histogram(
    "mediaqueue_upload_size_bytes",
    "Bestandsgroottes van transfers",
    buckets=(1e5, 3e5, 1e6, 3e6, 1e7, 3e7, 1e8, 3e8, 1e9),
)

upload_latency_hist = Histogram(
    "mediaqueue_upload_seconds",
    "Duur van een transfer",
)


@router.get("/metrics", include_in_schema=True)
def metrics() -> Response:
    # Prometheus expects text/plain; version=0.0.4
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
