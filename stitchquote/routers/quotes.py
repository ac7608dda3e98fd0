# stitchquote/routers/quotes.py
import logging
from typing import Dict

from fastapi import APIRouter, Depends, Request

from stitchquote.core.rate_limit import limiter, quote_limit, render_limit
from stitchquote.dependencies import Services, get_services
from stitchquote.schemas.quote import QuoteRequest, RenderRequest
from stitchquote.services.intake_service import submit_quote
from stitchquote.services.render_orchestrator import generate_or_fetch_render

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/quote", tags=["quotes"])


@router.get("")
def quote_alive() -> Dict[str, str]:
    return {
        "status": "ok",
        "message": "POST JSON {name, email, phone, category, notes, photoUrls} to get a photo estimate.",
    }


@router.post("")
@limiter.limit(quote_limit)
def create_quote(
    request: Request,
    payload: QuoteRequest,
    services: Services = Depends(get_services),
) -> Dict:
    result = submit_quote(services, payload)
    return result.to_dict()


@router.post("/render")
@limiter.limit(render_limit)
def render_quote(
    request: Request,
    payload: RenderRequest,
    services: Services = Depends(get_services),
) -> Dict:
    result = generate_or_fetch_render(
        services,
        quote_id=payload.quote_id,
        category=payload.category,
        photo_urls=payload.photo_urls,
    )
    return result.to_dict()
