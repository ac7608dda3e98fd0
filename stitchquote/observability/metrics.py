# stitchquote/observability/metrics.py
from fastapi import APIRouter
from starlette.responses import Response

from prometheus_client import Counter, generate_latest, CONTENT_TYPE_LATEST

router = APIRouter(tags=["observability"])

quotes_submitted_counter = Counter(
    "stitchquote_quotes_submitted_total",
    "Quotes stored after a successful assessment",
    ["category"],  # auto|marine|motorcycle
)

assessment_counter = Counter(
    "stitchquote_assessments_total",
    "AI assessment calls",
    ["result"],  # success|error
)

render_counter = Counter(
    "stitchquote_renders_total",
    "Render requests",
    ["result"],  # generated|cached|failed
)

email_counter = Counter(
    "stitchquote_emails_total",
    "Notification emails",
    ["kind", "result"],  # kind: lead|receipt|render_shop|render_customer
)


@router.get("/metrics", include_in_schema=True)
def metrics() -> Response:
    # Prometheus expects text/plain; version=0.0.4
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
