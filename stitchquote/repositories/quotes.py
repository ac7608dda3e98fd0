# stitchquote/repositories/quotes.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from stitchquote.domain.errors import QuoteFetchFailed, QuotePersistenceError
from stitchquote.models.quote import QuoteORM

logger = logging.getLogger(__name__)

_UPDATABLE = {c.key for c in QuoteORM.__table__.columns} - {"id", "created_at"}


class QuoteRepository:
    """
    Quote Record Store. Every call opens its own short session, so writes
    made by one step never ride along in another step's transaction.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def insert(self, values: Dict[str, Any]) -> str:
        try:
            with self._session_factory() as db:
                quote = QuoteORM(**values)
                db.add(quote)
                db.commit()
                return quote.id
        except SQLAlchemyError as e:
            logger.error("quote insert failed: %s", e)
            raise QuotePersistenceError("Could not save the quote.", detail=str(e)) from e

    def fetch_raw(self, quote_id: str) -> Optional[Dict[str, Any]]:
        """Raw record (columns merged over imported legacy fields) or None."""
        try:
            with self._session_factory() as db:
                quote = db.get(QuoteORM, str(quote_id))
                return quote.to_raw() if quote else None
        except SQLAlchemyError as e:
            logger.error("quote fetch failed id=%s: %s", quote_id, e)
            raise QuoteFetchFailed("Failed to load quote.", detail=str(e)) from e

    def list_recent(self, limit: int = 50) -> List[Dict[str, Any]]:
        try:
            with self._session_factory() as db:
                rows = db.scalars(
                    select(QuoteORM).order_by(QuoteORM.created_at.desc()).limit(limit)
                ).all()
                return [row.to_raw() for row in rows]
        except SQLAlchemyError as e:
            logger.error("quote list failed: %s", e)
            raise QuoteFetchFailed("Failed to load quotes.", detail=str(e)) from e

    def update(self, quote_id: str, **fields: Any) -> bool:
        """Partial update. Returns False when no row matched."""
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unknown quote fields: {sorted(unknown)}")
        if not fields:
            return False
        with self._session_factory() as db:
            result = db.execute(
                update(QuoteORM).where(QuoteORM.id == str(quote_id)).values(**fields)
            )
            db.commit()
            return result.rowcount > 0

    def set_preview_if_absent(self, quote_id: str, data_url: str) -> bool:
        """
        Store the inline render only if none is stored yet.
        Returns False when another writer got there first (or no such quote).
        """
        with self._session_factory() as db:
            result = db.execute(
                update(QuoteORM)
                .where(QuoteORM.id == str(quote_id))
                .where(
                    (QuoteORM.preview_image_data_url.is_(None))
                    | (QuoteORM.preview_image_data_url == "")
                )
                .values(preview_image_data_url=data_url, render_error=None)
            )
            db.commit()
            return result.rowcount > 0
