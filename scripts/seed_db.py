from __future__ import annotations

import argparse

from alembic import command
from alembic.config import Config

from app.pdv.core.config import settings
from app.pdv.db.seed import run_seed
from app.pdv.db.session import SessionLocal


def main() -> int:
    parser = argparse.ArgumentParser(description="Migrate and seed the PDV database")
    parser.add_argument("--skip-migrations", action="store_true", help="Only run the seed step")
    args = parser.parse_args()

    if not args.skip_migrations:
        config = Config("alembic.ini")
        config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
        command.upgrade(config, "head")

    with SessionLocal() as db:
        run_seed(db)
    print(f"seeded admin user '{settings.ADMIN_USERNAME}' and payment settings")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
