# stitchquote/services/email.py
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

POSTMARK_SEND_URL = "https://api.postmarkapp.com/email"


class EmailError(RuntimeError):
    pass


def send_postmark_email(
    *,
    server_token: Optional[str],
    from_address: Optional[str],
    to: str,
    subject: str,
    html_body: str,
    text_body: Optional[str] = None,
    reply_to: Optional[str] = None,
    attachments: Optional[List[Dict[str, Any]]] = None,
    message_stream: str = "outbound",  # Postmark default stream
    metadata: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Returns Postmark MessageID on success.
    Raises EmailError on failure.

    `attachments` use Postmark's shape: Name, Content (base64), ContentType
    and optionally ContentID ("cid:...") for inline images.
    """
    if not server_token:
        raise EmailError("postmark_not_configured: POSTMARK_SERVER_TOKEN missing")
    if not from_address:
        raise EmailError("postmark_not_configured: POSTMARK_FROM missing")

    payload: Dict[str, Any] = {
        "From": from_address,
        "To": to,
        "Subject": subject,
        "HtmlBody": html_body,
        "MessageStream": message_stream,
    }
    if reply_to:
        payload["ReplyTo"] = reply_to
    if text_body:
        payload["TextBody"] = text_body
    if attachments:
        payload["Attachments"] = attachments
    if metadata:
        payload["Metadata"] = metadata

    headers = {
        "Accept": "application/json",
        "Content-Type": "application/json",
        "X-Postmark-Server-Token": server_token,
    }

    try:
        r = requests.post(
            POSTMARK_SEND_URL,
            headers=headers,
            data=json.dumps(payload),
            timeout=15,
        )
    except requests.RequestException as e:
        raise EmailError(f"postmark_network_error:{type(e).__name__}:{e}") from e

    if r.status_code >= 300:
        # Postmark returns JSON with Message/ErrorCode
        try:
            data = r.json()
        except ValueError:
            data = {"raw": r.text}
        raise EmailError(f"postmark_send_failed:{r.status_code}:{data}")

    data = r.json()
    message_id = str(data.get("MessageID") or "")
    if not message_id:
        raise EmailError(f"postmark_send_failed:no_message_id:{data}")

    return message_id
