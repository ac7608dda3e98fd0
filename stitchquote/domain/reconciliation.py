# stitchquote/domain/reconciliation.py
"""
Read-side adapter for stored quote records.

Records written by older releases use different column names (snake_case,
camelCase, legacy names) and store photos as arrays, objects or JSON text.
`reconcile_quote` resolves every such variant once and returns the canonical
QuoteView the admin API and pages work from. Pure: no I/O, no writes.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from stitchquote.domain.media import (
    MediaReference,
    extract_media_references,
    first_url,
    parse_json_value,
)


class EmailState(str, Enum):
    SENT = "sent"
    NOT_SENT = "not_sent"
    UNKNOWN = "unknown"

    @property
    def label(self) -> str:
        return {"sent": "Sent", "not_sent": "Not sent", "unknown": "Unknown"}[self.value]


class RenderState(str, Enum):
    UNRENDERED = "unrendered"
    RENDERED = "rendered"
    FAILED = "failed"


EMAIL_KINDS = ("lead", "receipt", "render")

# Precedence: canonical snake_case, camelCase, then legacy names.
EMAIL_FLAG_FIELDS: Dict[str, Sequence[str]] = {
    "lead": ("lead_email_sent", "leadEmailSent", "email_sent", "emailSent"),
    "receipt": ("receipt_email_sent", "receiptEmailSent", "customer_email_sent"),
    "render": ("render_email_sent", "renderEmailSent", "render_emailed"),
}

PHOTO_LIST_FIELDS = ("photo_urls", "photoUrls", "photos", "photo_urls_json")
PREVIEW_URL_FIELDS = ("preview_image_url", "previewImageUrl")
PREVIEW_DATA_FIELDS = ("preview_image_data_url",)
LEGACY_PREVIEW_DATA_FIELDS = ("previewImageDataUrl",)
PREVIEW_FIELDS = PREVIEW_URL_FIELDS + PREVIEW_DATA_FIELDS + LEGACY_PREVIEW_DATA_FIELDS

NAME_FIELDS = ("name", "customer_name", "customerName")
EMAIL_FIELDS = ("email", "customer_email", "customerEmail")
PHONE_FIELDS = ("phone", "customer_phone", "customerPhone")
NOTES_FIELDS = ("notes", "customer_notes", "customerNotes")

_TRUE = {"true", "t", "1", "yes", "y"}
_FALSE = {"false", "f", "0", "no", "n"}


@dataclass
class EmailStatus:
    kind: str
    state: EmailState
    source_field: Optional[str] = None
    provider_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class QuoteView:
    id: str
    created_at: Optional[str]
    status: str
    name: str
    email: str
    phone: str
    category: str
    notes: str
    item: str
    photo_urls: List[str]
    photo_source: str
    assessment: Dict[str, Any]
    estimate: Dict[str, Any]
    total_low: Optional[int]
    total_high: Optional[int]
    preview_src: str
    render_state: RenderState
    render_error: Optional[str]
    emails: Dict[str, EmailStatus] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["render_state"] = self.render_state.value
        out["emails"] = {
            kind: {**asdict(status), "state": status.state.value, "label": status.state.label}
            for kind, status in self.emails.items()
        }
        return out

    def summary(self) -> Dict[str, Any]:
        """Row for the admin list: no assessment body, no inline image data."""
        return {
            "id": self.id,
            "created_at": self.created_at,
            "status": self.status,
            "name": self.name,
            "email": self.email,
            "category": self.category,
            "item": self.item,
            "total_low": self.total_low,
            "total_high": self.total_high,
            "photo_count": len(self.photo_urls),
            "render_state": self.render_state.value,
            "emails": {kind: status.state.value for kind, status in self.emails.items()},
        }


# -------------------------
# Field helpers
# -------------------------
def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def first_present(record: Mapping[str, Any], names: Sequence[str]) -> Any:
    for name in names:
        value = record.get(name)
        if _present(value):
            return value
    return None


def _text(record: Mapping[str, Any], names: Sequence[str]) -> str:
    value = first_present(record, names)
    return str(value).strip() if value is not None else ""


def parse_flag(value: Any) -> Optional[bool]:
    """bool / 0-1 / 'true'-'false' style values; anything else is not a flag."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        v = value.strip().lower()
        if v in _TRUE:
            return True
        if v in _FALSE:
            return False
    return None


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return None


def _first_int(*sources: tuple) -> Optional[int]:
    # 0 is a real total; only absent or unparseable values fall through
    for record, names in sources:
        value = _as_int(first_present(record, names))
        if value is not None:
            return value
    return None


def _as_object(value: Any) -> Dict[str, Any]:
    parsed = parse_json_value(value)
    return dict(parsed) if isinstance(parsed, dict) else {}


# -------------------------
# Resolution rules
# -------------------------
def _urls_from(value: Any) -> List[str]:
    parsed = parse_json_value(value)
    items: List[Any]
    if isinstance(parsed, list):
        items = parsed
    elif isinstance(parsed, dict):
        items = [parsed] if "url" in parsed else [
            x for v in parsed.values() if isinstance(v, list) for x in v
        ]
    elif isinstance(parsed, str):
        items = [parsed] if parsed.strip().lower().startswith(("http://", "https://")) else []
    else:
        items = []

    urls: List[str] = []
    for item in items:
        url = first_url(item)
        if url and url not in urls:
            urls.append(url)
    return urls


def resolve_photo_urls(record: Mapping[str, Any]) -> tuple[List[str], str]:
    """Return (urls, where they came from). Never raises; empty list if nothing matches."""
    for name in PHOTO_LIST_FIELDS:
        if name in record:
            urls = _urls_from(record[name])
            if urls:
                return urls, name

    if "files" in record:
        urls = _urls_from(record["files"])
        if urls:
            return urls, "files"

    refs: List[MediaReference] = extract_media_references(dict(record), skip_keys=PREVIEW_FIELDS)
    if refs:
        return [r.url for r in refs], "scan:" + ",".join(r.path for r in refs)

    return [], "none"


def resolve_email_status(record: Mapping[str, Any], kind: str) -> EmailStatus:
    for name in EMAIL_FLAG_FIELDS[kind]:
        flag = parse_flag(record.get(name))
        if flag is None:
            continue
        return EmailStatus(
            kind=kind,
            state=EmailState.SENT if flag else EmailState.NOT_SENT,
            source_field=name,
            provider_id=_text(record, (f"{kind}_email_id",)) or None,
            error=_text(record, (f"{kind}_email_error",)) or None,
        )
    return EmailStatus(kind=kind, state=EmailState.UNKNOWN)


def resolve_preview_src(record: Mapping[str, Any]) -> str:
    for names in (PREVIEW_URL_FIELDS, PREVIEW_DATA_FIELDS, LEGACY_PREVIEW_DATA_FIELDS):
        value = first_present(record, names)
        if value is not None:
            return str(value).strip()
    return ""


def _created_at(record: Mapping[str, Any]) -> Optional[str]:
    value = first_present(record, ("created_at", "createdAt"))
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value) if value is not None else None


def reconcile_quote(record: Mapping[str, Any]) -> QuoteView:
    assessment = _as_object(first_present(record, ("assessment", "ai_assessment")))
    estimate = _as_object(first_present(record, ("estimate", "pricing")))

    total_low = _first_int(
        (estimate, ("totalLow", "total_low")),
        (record, ("total_low", "estimate_low")),
    )
    total_high = _first_int(
        (estimate, ("totalHigh", "total_high")),
        (record, ("total_high", "estimate_high")),
    )

    photo_urls, photo_source = resolve_photo_urls(record)
    preview = resolve_preview_src(record)
    render_error = _text(record, ("render_error", "renderError")) or None

    if preview:
        render_state = RenderState.RENDERED
    elif render_error:
        render_state = RenderState.FAILED
    else:
        render_state = RenderState.UNRENDERED

    return QuoteView(
        id=str(record.get("id") if record.get("id") is not None else ""),
        created_at=_created_at(record),
        status=_text(record, ("status",)) or "new",
        name=_text(record, NAME_FIELDS),
        email=_text(record, EMAIL_FIELDS),
        phone=_text(record, PHONE_FIELDS),
        category=_text(record, ("category",)) or str(assessment.get("category") or ""),
        notes=_text(record, NOTES_FIELDS),
        item=str(assessment.get("item") or "").strip(),
        photo_urls=photo_urls,
        photo_source=photo_source,
        assessment=assessment,
        estimate=estimate,
        total_low=total_low,
        total_high=total_high,
        preview_src=preview,
        render_state=render_state,
        render_error=render_error,
        emails={kind: resolve_email_status(record, kind) for kind in EMAIL_KINDS},
    )
