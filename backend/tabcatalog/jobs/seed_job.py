from __future__ import annotations
import argparse

from tabcatalog.db import DATABASE_URL, close_db, init_db, make_engine, make_session_factory
from tabcatalog.services.seed import seed_example_tabs

if __name__ == "__main__":
    ap = argparse.ArgumentParser(description="Create the schema and seed example tabs into an empty store")
    ap.add_argument("--database-url", default=DATABASE_URL)
    args = ap.parse_args()

    engine = make_engine(args.database_url)
    try:
        init_db(engine)
        with make_session_factory(engine)() as db:
            inserted = seed_example_tabs(db)
        print(f"Seed complete - inserted: {inserted}")
    finally:
        close_db(engine)
