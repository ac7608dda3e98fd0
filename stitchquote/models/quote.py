# stitchquote/models/quote.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stitchquote.db import Base

QUOTE_STATUSES = ("new", "contacted", "scheduled", "in_progress", "completed", "archived")
EMAIL_KINDS = ("lead", "receipt", "render")


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuoteORM(Base):
    __tablename__ = "quotes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )
    status: Mapped[str] = mapped_column(String(32), default="new", nullable=False)

    # customer
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # media; immutable once the quote exists
    photo_urls: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    files: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    # AI + pricing
    assessment: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    estimate: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    total_low: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    total_high: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # render artifact; the two may disagree, either may be empty
    preview_image_data_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    preview_image_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    render_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # notification status; NULL means "never recorded"
    lead_email_sent: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    lead_email_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    lead_email_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    receipt_email_sent: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    receipt_email_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    receipt_email_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    render_email_sent: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    render_email_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    render_email_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # fields of records imported from older releases, kept verbatim
    extra: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    def to_raw(self) -> dict[str, Any]:
        """Columns merged over `extra`, the shape the reconciliation view reads."""
        raw: dict[str, Any] = dict(self.extra or {})
        for column in self.__table__.columns:
            if column.key == "extra":
                continue
            value = getattr(self, column.key)
            if value is not None or column.key not in raw:
                raw[column.key] = value
        return raw

    def __repr__(self) -> str:
        return f"<QuoteORM id={self.id} category={self.category!r} status={self.status!r}>"
