"""Populate the database with a small demo identity group."""
import argparse
import logging
import sys
from typing import List, Optional, Sequence

from config import get_settings
from db_models import ContactRecord, LinkPrecedence
from db_setup import ContactStore

logger = logging.getLogger(__name__)


def seed(store: ContactStore) -> List[ContactRecord]:
    with store.transaction():
        primary = store.insert("john@example.com", "9999999999", None, LinkPrecedence.PRIMARY)
        alt_email = store.insert("john.alt@example.com", None, primary.id, LinkPrecedence.SECONDARY)
        alt_phone = store.insert(None, "8888888888", primary.id, LinkPrecedence.SECONDARY)

    created = [primary, alt_email, alt_phone]
    for contact in created:
        logger.info("Created %s contact %s", contact.linkPrecedence.value, contact.id)
    return created


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed the contacts database with demo data")
    parser.add_argument("--db", default=None, help="SQLite database file (defaults to DB_NAME setting)")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None):
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    with ContactStore(args.db or get_settings().db_name) as store:
        seed(store)
    logger.info("Seed completed successfully")


if __name__ == "__main__":
    main()
