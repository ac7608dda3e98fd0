# stitchquote/services/side_effects.py
"""
Best-effort steps that follow a successful primary result (emails, status
flag writes, durable-URL mirroring). Each one yields its own outcome; none of
them may raise into the caller.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, Tuple

from sqlalchemy.exc import SQLAlchemyError

from stitchquote.repositories.quotes import QuoteRepository
from stitchquote.services.notifications import EmailOutcome

logger = logging.getLogger(__name__)


def fan_out(
    quote_id: str,
    effects: Iterable[Tuple[str, Callable[[], EmailOutcome]]],
) -> Dict[str, EmailOutcome]:
    """Run each named send in turn; a crash in one is recorded as its outcome."""
    outcomes: Dict[str, EmailOutcome] = {}
    for name, send in effects:
        try:
            outcomes[name] = send()
        except Exception as e:
            logger.exception("side effect %s crashed quote=%s", name, quote_id)
            outcomes[name] = EmailOutcome(sent=False, error=f"{type(e).__name__}: {e}")
    return outcomes


def email_fields(kind: str, outcome: EmailOutcome) -> Dict[str, Any]:
    return {
        f"{kind}_email_sent": outcome.sent,
        f"{kind}_email_id": outcome.id,
        f"{kind}_email_error": outcome.error,
    }


def record_quietly(quotes: QuoteRepository, quote_id: str, **fields: Any) -> bool:
    """Partial update whose failure is logged, never raised."""
    try:
        return quotes.update(quote_id, **fields)
    except SQLAlchemyError as e:
        logger.warning("status write failed quote=%s fields=%s: %s", quote_id, sorted(fields), e)
        return False
