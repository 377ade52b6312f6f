from __future__ import annotations

import sys
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import func, inspect, select

from quotadraw.db.engine import get_sessionmaker, make_engine
from quotadraw.logging_config import configure_logging
from quotadraw.models import Base, Campaign

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def upgrade_db(target_revision: str = "head") -> None:
    """Bring the configured database to ``target_revision`` with Alembic."""
    alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    command.upgrade(alembic_cfg, target_revision)


def missing_tables() -> list[str]:
    """Return model tables that the migrated schema does not contain."""
    engine = make_engine()
    present = set(inspect(engine).get_table_names())
    print("Current tables:", ", ".join(sorted(present)))
    return sorted(set(Base.metadata.tables) - present)


def print_campaign_summary() -> None:
    engine = make_engine()
    with get_sessionmaker(engine)() as session:
        rows = session.execute(
            select(Campaign.game_type, func.count(Campaign.id)).group_by(Campaign.game_type)
        ).all()
    if not rows:
        print("No campaigns yet; run scripts/seed_dev.py for sample data.")
        return
    for game_type, count in rows:
        print(f"{game_type}: {count} campaign(s)")


def main() -> int:
    """Apply migrations, check the schema against the models and summarize campaigns."""
    configure_logging()
    upgrade_db(sys.argv[1] if len(sys.argv) > 1 else "head")

    missing = missing_tables()
    if missing:
        print("Schema is missing tables:", ", ".join(missing), file=sys.stderr)
        return 1
    print_campaign_summary()
    return 0


if __name__ == "__main__":
    sys.exit(main())
