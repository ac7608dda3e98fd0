# stitchquote/services/intake_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Sequence

from stitchquote.domain.assessment import Assessment, assessment_from_classification
from stitchquote.domain.errors import QuoteValidationError
from stitchquote.domain.pricing import Estimate, estimate_from_assessment
from stitchquote.observability.metrics import quotes_submitted_counter
from stitchquote.schemas.quote import QuoteRequest
from stitchquote.services.notifications import EmailOutcome
from stitchquote.services.side_effects import email_fields, fan_out, record_quietly

if TYPE_CHECKING:
    from stitchquote.dependencies import Services

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    quote_id: str
    assessment: Assessment
    estimate: Estimate
    email_outcomes: Dict[str, EmailOutcome] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quoteId": self.quote_id,
            "assessment": self.assessment.to_dict(),
            "estimate": self.estimate.to_dict(),
            "emailOutcomes": {k: v.to_dict() for k, v in self.email_outcomes.items()},
        }


def validate_photo_urls(photo_urls: Sequence[str], max_photos: int) -> List[str]:
    urls = [str(u).strip() for u in photo_urls or [] if str(u or "").strip()]
    if not urls:
        raise QuoteValidationError("Please upload at least one photo.")
    if len(urls) > max_photos:
        raise QuoteValidationError(f"Please upload at most {max_photos} photos.")
    for url in urls:
        if not url.lower().startswith(("http://", "https://")):
            raise QuoteValidationError("Photo URLs must be http(s) links.", detail=url[:200])
    return urls


def submit_quote(services: "Services", req: QuoteRequest) -> SubmissionResult:
    """
    Assess the photos, price the assessment, store the quote, then notify.

    Assessment and insert failures propagate (no estimate without them).
    Emails and their status flags are best effort.
    """
    photo_urls = validate_photo_urls(req.photo_urls, services.settings.MAX_PHOTOS)
    category = req.category.value

    raw = services.assessor.classify(category=category, notes=req.notes, photo_urls=photo_urls)
    assessment = assessment_from_classification(raw, category)
    estimate = estimate_from_assessment(assessment)

    assessment_data = assessment.to_dict()
    estimate_data = estimate.to_dict()

    quote_id = services.quotes.insert(
        {
            "status": "new",
            "name": req.name,
            "email": str(req.email),
            "phone": req.phone,
            "category": category,
            "notes": req.notes,
            "photo_urls": photo_urls,
            "assessment": assessment_data,
            "estimate": estimate_data,
            "total_low": estimate.totalLow,
            "total_high": estimate.totalHigh,
        }
    )
    quotes_submitted_counter.labels(category=category).inc()
    logger.info(
        "quote stored id=%s category=%s range=%s-%s",
        quote_id, category, estimate.totalLow, estimate.totalHigh,
    )

    customer = {"name": req.name, "email": str(req.email), "phone": req.phone, "notes": req.notes}
    mailer = services.mailer
    outcomes = fan_out(
        quote_id,
        [
            ("lead", lambda: mailer.send_lead_notice(
                quote_id=quote_id, customer=customer,
                assessment=assessment_data, estimate=estimate_data,
            )),
            ("receipt", lambda: mailer.send_receipt(
                quote_id=quote_id, customer=customer,
                assessment=assessment_data, estimate=estimate_data,
            )),
        ],
    )

    record_quietly(
        services.quotes,
        quote_id,
        **email_fields("lead", outcomes["lead"]),
        **email_fields("receipt", outcomes["receipt"]),
    )

    return SubmissionResult(
        quote_id=quote_id,
        assessment=assessment,
        estimate=estimate,
        email_outcomes=outcomes,
    )
