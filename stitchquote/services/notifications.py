# stitchquote/services/notifications.py
"""
Notification emails for the quote and render flows.

Every send is independent: a failure becomes an EmailOutcome with the error
text instead of an exception, so one email can never block or undo another.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import jinja2

from stitchquote.config import Settings
from stitchquote.observability.metrics import email_counter
from stitchquote.services.email import EmailError, send_postmark_email

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"
RENDER_CID = "render-preview.png"


@dataclass
class EmailOutcome:
    sent: bool
    id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def money(value: Any) -> str:
    try:
        return f"{int(value):,}"
    except (TypeError, ValueError):
        return "0"


class Mailer:
    def __init__(
        self,
        settings: Settings,
        send: Callable[..., str] = send_postmark_email,
        templates_dir: Path = TEMPLATES_DIR,
    ):
        self.settings = settings
        self._send = send
        self.jinja_env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(templates_dir)),
            autoescape=True,
        )
        self.jinja_env.filters["money"] = money

    # -------------------------
    # Plumbing
    # -------------------------
    def _render(self, template: str, **context: Any) -> str:
        context.setdefault("shop_name", self.settings.SHOP_NAME)
        return self.jinja_env.get_template(template).render(**context)

    def _deliver(
        self,
        kind: str,
        *,
        to: Optional[str],
        subject: str,
        html_body: str,
        reply_to: Optional[str] = None,
        attachments: Optional[List[Dict[str, Any]]] = None,
        quote_id: Optional[str] = None,
    ) -> EmailOutcome:
        if not (to or "").strip():
            email_counter.labels(kind=kind, result="skipped").inc()
            return EmailOutcome(sent=False, error="no_recipient")

        try:
            message_id = self._send(
                server_token=self.settings.POSTMARK_SERVER_TOKEN,
                from_address=self.settings.POSTMARK_FROM,
                to=to.strip(),
                subject=subject,
                html_body=html_body,
                reply_to=reply_to,
                attachments=attachments,
                message_stream=self.settings.POSTMARK_MESSAGE_STREAM,
                metadata={"quote_id": quote_id, "kind": kind} if quote_id else None,
            )
        except EmailError as e:
            logger.warning("email %s failed quote=%s: %s", kind, quote_id, e)
            email_counter.labels(kind=kind, result="error").inc()
            return EmailOutcome(sent=False, error=str(e))

        email_counter.labels(kind=kind, result="sent").inc()
        return EmailOutcome(sent=True, id=message_id)

    # -------------------------
    # Quote flow
    # -------------------------
    def send_lead_notice(
        self,
        *,
        quote_id: str,
        customer: Mapping[str, Any],
        assessment: Mapping[str, Any],
        estimate: Mapping[str, Any],
    ) -> EmailOutcome:
        subject = (
            f"New Photo Quote: {str(assessment.get('category', '')).upper()} • "
            f"{assessment.get('item', '')} • "
            f"${estimate.get('totalLow')}–${estimate.get('totalHigh')}"
        )
        html = self._render(
            "lead_notice.html",
            quote_id=quote_id,
            customer=customer,
            assessment=assessment,
            estimate=estimate,
            admin_url=self.settings.admin_url_for(quote_id),
        )
        return self._deliver(
            "lead",
            to=self.settings.QUOTE_TO_EMAIL,
            subject=subject,
            html_body=html,
            reply_to=customer.get("email") or None,
            quote_id=quote_id,
        )

    def send_receipt(
        self,
        *,
        quote_id: str,
        customer: Mapping[str, Any],
        assessment: Mapping[str, Any],
        estimate: Mapping[str, Any],
    ) -> EmailOutcome:
        html = self._render(
            "receipt.html",
            customer=customer,
            assessment=assessment,
            estimate=estimate,
        )
        return self._deliver(
            "receipt",
            to=customer.get("email"),
            subject=f"We received your photo quote request | {self.settings.SHOP_NAME}",
            html_body=html,
            reply_to=self.settings.QUOTE_TO_EMAIL,
            quote_id=quote_id,
        )

    # -------------------------
    # Render flow
    # -------------------------
    def send_render_ready_shop(
        self,
        *,
        quote_id: str,
        customer_name: str,
        category: str,
        photo_urls: Sequence[str],
        preview_image_url: Optional[str],
    ) -> EmailOutcome:
        html = self._render(
            "render_ready_shop.html",
            quote_id=quote_id,
            customer_name=customer_name,
            category=category,
            photo_urls=list(photo_urls),
            preview_image_url=preview_image_url,
            admin_url=self.settings.admin_url_for(quote_id),
        )
        return self._deliver(
            "render_shop",
            to=self.settings.QUOTE_TO_EMAIL,
            subject=f"Render ready: {category.upper()} quote {quote_id}",
            html_body=html,
            quote_id=quote_id,
        )

    def send_render_ready_customer(
        self,
        *,
        quote_id: str,
        to: Optional[str],
        customer_name: str,
        image_b64: str,
    ) -> EmailOutcome:
        """Customer copy: the render travels inline (cid:), no internal links."""
        html = self._render(
            "render_ready_customer.html",
            customer_name=customer_name,
            image_cid=RENDER_CID,
        )
        attachments = [
            {
                "Name": RENDER_CID,
                "Content": image_b64,
                "ContentType": "image/png",
                "ContentID": f"cid:{RENDER_CID}",
            }
        ]
        return self._deliver(
            "render_customer",
            to=to,
            subject=f"Your concept render from {self.settings.SHOP_NAME}",
            html_body=html,
            reply_to=self.settings.QUOTE_TO_EMAIL,
            attachments=attachments,
            quote_id=quote_id,
        )
