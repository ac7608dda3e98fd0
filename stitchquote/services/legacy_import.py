# stitchquote/services/legacy_import.py
"""
Import quote exports from older releases (JSON lines, one record per line).

Canonical columns are copied when their value fits the column type; every
other field is kept verbatim in `extra`, where the reconciliation view
picks it up.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, Tuple

from sqlalchemy import JSON, Boolean, DateTime, Integer

from stitchquote.domain.errors import QuotePersistenceError
from stitchquote.domain.media import parse_json_value
from stitchquote.domain.reconciliation import parse_flag
from stitchquote.models.quote import QuoteORM
from stitchquote.repositories.quotes import QuoteRepository

logger = logging.getLogger(__name__)

_COLUMNS = {c.key: c for c in QuoteORM.__table__.columns if c.key not in ("extra", "updated_at")}
_MISSING = object()


def _coerce(column, value: Any) -> Any:
    """Value converted for `column`, or _MISSING when it doesn't fit."""
    if value is None:
        return _MISSING
    if isinstance(column.type, Boolean):
        flag = parse_flag(value)
        return _MISSING if flag is None else flag
    if isinstance(column.type, Integer):
        if isinstance(value, bool):
            return _MISSING
        try:
            return int(round(float(value)))
        except (TypeError, ValueError, OverflowError):
            return _MISSING
    if isinstance(column.type, DateTime):
        if isinstance(value, datetime):
            return value
        try:
            return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return _MISSING
    if isinstance(column.type, JSON):
        parsed = parse_json_value(value)
        return parsed if isinstance(parsed, (list, dict)) else _MISSING
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value)
    return _MISSING


def split_legacy_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """Legacy record -> insert values (canonical columns + `extra`)."""
    values: Dict[str, Any] = {}
    extra: Dict[str, Any] = {}
    for key, value in record.items():
        column = _COLUMNS.get(key)
        coerced = _coerce(column, value) if column is not None else _MISSING
        if coerced is _MISSING:
            extra[key] = value
        else:
            values[key] = coerced
    if extra:
        values["extra"] = extra
    return values


def import_lines(repo: QuoteRepository, lines: Iterable[str]) -> Tuple[int, int]:
    """Returns (imported, skipped). Blank lines are ignored."""
    imported = skipped = 0
    for lineno, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except ValueError as e:
            logger.warning("line %d: not JSON (%s)", lineno, e)
            skipped += 1
            continue
        if not isinstance(record, dict):
            logger.warning("line %d: not an object", lineno)
            skipped += 1
            continue
        try:
            repo.insert(split_legacy_record(record))
        except QuotePersistenceError as e:
            # duplicate id or a row the database rejects; keep going
            logger.warning("line %d: insert rejected (%s)", lineno, e.detail or e.message)
            skipped += 1
            continue
        imported += 1
    return imported, skipped
