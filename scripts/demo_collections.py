"""Demo script: build collections through the factory and exercise their policy."""

from __future__ import annotations

import argparse
import logging
from datetime import datetime, timezone
from pathlib import Path

import pydantic

from collection_factory import (
    AccessDeniedError,
    Collection,
    create_collection_factory,
    schema_from_definition,
)
from collection_factory.db.engine import (
    create_engine,
    create_session_factory,
    set_default_session_factory,
)
from collection_factory.db.schema import create_all


class StampedCollection(Collection):
    """Collection that stamps ``created_at`` on every insert."""

    def insert(self, doc):
        return super().insert({**doc, "created_at": datetime.now(timezone.utc)})


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create collections via the collection factory.")
    parser.add_argument("--database-url", help="SQLAlchemy URL for the document store.")
    parser.add_argument("--sqlite-path", type=Path, help="SQLite file for the document store.")
    parser.add_argument("--quiet", action="store_true", help="Only log warnings.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()

    logging.basicConfig(
        level=logging.DEBUG if not args.quiet else logging.WARNING,
        format="[%(levelname)s] %(message)s",
    )
    logger = logging.getLogger("demo_collections")

    if args.database_url:
        engine = create_engine(args.database_url)
    else:
        engine = create_engine(sqlite_path=args.sqlite_path) if args.sqlite_path else create_engine()
    create_all(engine)
    set_default_session_factory(create_session_factory(engine))

    create_collection = create_collection_factory(schema_factory=schema_from_definition)
    books = create_collection(name="books", schema={"title": str, "pages": {"type": int, "optional": True}})

    book_id = books.insert({"title": "Dune", "pages": 412})
    logger.info("Inserted book %s", book_id)

    try:
        books.insert({"age": 10})
    except pydantic.ValidationError as exc:
        logger.info("Schema rejected document: %d error(s)", exc.error_count())

    try:
        books.client_insert({"title": "Emma"}, user_id="demo-user")
    except AccessDeniedError as exc:
        logger.info("Client insert rejected: %s", exc)

    create_stamped = create_collection_factory(custom=StampedCollection)
    events = create_stamped(name="events")
    event_id = events.insert({"kind": "demo"})

    print("Books:")
    for book in books.find():
        print(f"  - {book['_id']}: {book['title']} ({book.get('pages')} pages)")
    print("Events:")
    event = events.find_one(event_id)
    print(f"  - {event['_id']}: {event['kind']} at {event['created_at'].isoformat()}")


if __name__ == "__main__":
    main()
