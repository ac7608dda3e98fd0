# stitchquote/services/render_orchestrator.py
"""
Generate-or-fetch for the "after" concept render.

A quote gets at most one render. The stored artifact is checked first and
returned as cached; otherwise one image is generated under a per-quote lock
and written with a conditional update, so a concurrent writer in another
process that got there first wins and this call returns its artifact.
"""
from __future__ import annotations

import base64
import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from stitchquote.domain.errors import (
    GenerationFailed,
    InvalidInput,
    QuoteFetchFailed,
    QuoteNotFound,
    UpstreamUnavailable,
)
from stitchquote.domain.reconciliation import (
    LEGACY_PREVIEW_DATA_FIELDS,
    PREVIEW_DATA_FIELDS,
    PREVIEW_URL_FIELDS,
    first_present,
    reconcile_quote,
)
from stitchquote.observability.metrics import render_counter
from stitchquote.services.image_generation import build_render_prompt, clean_category
from stitchquote.services.notifications import EmailOutcome
from stitchquote.services.side_effects import email_fields, fan_out, record_quietly

if TYPE_CHECKING:
    from stitchquote.dependencies import Services

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = "data:image/png;base64,"


@dataclass
class RenderResult:
    quote_id: str
    preview_image_data_url: Optional[str]
    preview_image_url: Optional[str]
    cached: bool
    # empty when cached: nothing was sent
    email_outcomes: Dict[str, EmailOutcome] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quoteId": self.quote_id,
            "previewImageUrl": self.preview_image_url,
            "previewImageDataUrl": self.preview_image_data_url,
            "cached": self.cached,
            "emailOutcomes": {k: v.to_dict() for k, v in self.email_outcomes.items()},
        }


def stored_artifact(record: Optional[Mapping[str, Any]]) -> Optional[RenderResult]:
    if not record:
        return None
    url = first_present(record, PREVIEW_URL_FIELDS)
    data_url = first_present(record, PREVIEW_DATA_FIELDS + LEGACY_PREVIEW_DATA_FIELDS)
    if url is None and data_url is None:
        return None
    return RenderResult(
        quote_id=str(record.get("id") or ""),
        preview_image_data_url=str(data_url).strip() if data_url is not None else None,
        preview_image_url=str(url).strip() if url is not None else None,
        cached=True,
    )


def _load(services: "Services", quote_id: str) -> Dict[str, Any]:
    """Raw record; a failing lookup is logged and treated as an empty record."""
    try:
        record = services.quotes.fetch_raw(quote_id)
    except QuoteFetchFailed as e:
        logger.warning("render cache lookup failed quote=%s: %s", quote_id, e.detail)
        return {}
    if record is None:
        raise QuoteNotFound(f"Quote {quote_id} not found.")
    return record


def _generate(services: "Services", quote_id: str, prompt: str, photo_urls: List[str]) -> str:
    try:
        image_b64 = services.image_generator.generate(prompt, photo_urls)
    except UpstreamUnavailable as e:
        _record_failure(services, quote_id, e.detail or e.message)
        raise GenerationFailed("Render failed. Please try again.", detail=e.detail) from e

    if not image_b64:
        _record_failure(services, quote_id, "No image returned from image generation tool")
        raise GenerationFailed("No image returned from image generation tool")
    return image_b64


def _record_failure(services: "Services", quote_id: str, reason: str) -> None:
    render_counter.labels(result="failed").inc()
    logger.warning("render failed quote=%s: %s", quote_id, reason)
    record_quietly(services.quotes, quote_id, render_error=reason[:2000])


def _claim(services: "Services", quote_id: str, data_url: str) -> Optional[RenderResult]:
    """
    Store our render unless one exists. Returns the winning artifact when
    another writer got there first, None when ours is the render of record
    (or the write failed and ours is all we have).
    """
    try:
        if services.quotes.set_preview_if_absent(quote_id, data_url):
            return None
    except SQLAlchemyError as e:
        logger.warning("render artifact write failed quote=%s: %s", quote_id, e)
        return None

    try:
        winner = stored_artifact(services.quotes.fetch_raw(quote_id))
    except QuoteFetchFailed as e:
        logger.warning("render re-read failed quote=%s: %s", quote_id, e.detail)
        return None
    if winner is not None:
        winner.quote_id = quote_id
    return winner


def _mirror(services: "Services", quote_id: str, image_b64: str) -> Optional[str]:
    """Durable copy of the render; failure leaves only the inline data."""
    key = f"renders/{quote_id}/{uuid.uuid4().hex}.png"
    try:
        url = services.storage.put(key, base64.b64decode(image_b64), "image/png")
    except Exception as e:
        logger.warning("render upload failed quote=%s: %s", quote_id, e)
        return None
    record_quietly(services.quotes, quote_id, preview_image_url=url)
    return url


def generate_or_fetch_render(
    services: "Services",
    *,
    quote_id: Any,
    category: Any,
    photo_urls: Sequence[str],
) -> RenderResult:
    quote_id = str(quote_id or "").strip()
    urls = [str(u).strip() for u in photo_urls or [] if str(u or "").strip()]
    if not quote_id:
        raise InvalidInput("Missing quoteId")
    if not urls:
        raise InvalidInput("Missing photoUrls")

    with services.render_locks.hold(quote_id):
        record = _load(services, quote_id)

        cached = stored_artifact(record)
        if cached is not None:
            cached.quote_id = quote_id
            render_counter.labels(result="cached").inc()
            return cached

        view = reconcile_quote(record) if record else None
        category = clean_category(category)
        prompt = build_render_prompt(
            category, (view.assessment.get("material_guess") if view else None)
        )

        image_b64 = _generate(services, quote_id, prompt, urls)
        data_url = DATA_URL_PREFIX + image_b64

        winner = _claim(services, quote_id, data_url)
        if winner is not None:
            logger.info("render for quote=%s already stored by another worker", quote_id)
            render_counter.labels(result="cached").inc()
            return winner

        render_counter.labels(result="generated").inc()
        preview_url = _mirror(services, quote_id, image_b64)

        mailer = services.mailer
        outcomes = fan_out(
            quote_id,
            [
                ("shop", lambda: mailer.send_render_ready_shop(
                    quote_id=quote_id,
                    customer_name=view.name if view else "",
                    category=category,
                    photo_urls=view.photo_urls if view and view.photo_urls else urls,
                    preview_image_url=preview_url,
                )),
                ("customer", lambda: mailer.send_render_ready_customer(
                    quote_id=quote_id,
                    to=view.email if view else None,
                    customer_name=view.name if view else "",
                    image_b64=image_b64,
                )),
            ],
        )
        record_quietly(services.quotes, quote_id, **email_fields("render", outcomes["shop"]))

        return RenderResult(
            quote_id=quote_id,
            preview_image_data_url=data_url,
            preview_image_url=preview_url,
            cached=False,
            email_outcomes=outcomes,
        )
