# Models package for StitchQuote

from .quote import EMAIL_KINDS, QuoteORM, QUOTE_STATUSES

__all__ = [
    "EMAIL_KINDS",
    "QuoteORM",
    "QUOTE_STATUSES",
]
