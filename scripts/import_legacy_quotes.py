# scripts/import_legacy_quotes.py
"""
Usage:
  python -m scripts.import_legacy_quotes export.jsonl [--database-url sqlite:///./stitchquote.db]
"""
import argparse
import sys

from stitchquote.config import get_settings
from stitchquote.core.logging_config import setup_logging
from stitchquote.db import init_db, make_engine, make_session_factory
from stitchquote.repositories.quotes import QuoteRepository
from stitchquote.services.legacy_import import import_lines


def main(argv=None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Import quote records exported by older releases.")
    parser.add_argument("path", help="JSON-lines file, one quote per line")
    parser.add_argument("--database-url", default=settings.DATABASE_URL)
    args = parser.parse_args(argv)

    setup_logging(settings.LOG_LEVEL)
    engine = make_engine(args.database_url)
    init_db(engine)
    repo = QuoteRepository(make_session_factory(engine))

    with open(args.path, encoding="utf-8") as f:
        imported, skipped = import_lines(repo, f)

    print(f"✅ imported {imported} quotes, skipped {skipped}")
    return 0 if not skipped else 1


if __name__ == "__main__":
    sys.exit(main())
