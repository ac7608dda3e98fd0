"""StitchQuote: photo quote intake and admin review for an upholstery shop."""

__version__ = "0.3.0"
