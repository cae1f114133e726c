from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect, text

ROOT = Path(__file__).resolve().parents[1]


def test_upgrade_creates_ledger_and_seeds_packages(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "alembic"))
    cfg.set_main_option("sqlalchemy.url", url)

    command.upgrade(cfg, "head")

    engine = create_engine(url)
    try:
        tables = set(inspect(engine).get_table_names())
        assert {"user_credits", "credit_transactions", "credit_packages"} <= tables
        with engine.connect() as conn:
            rows = conn.execute(text("SELECT id, credits, price_cents FROM credit_packages ORDER BY credits")).all()
        assert [tuple(r) for r in rows] == [
            ("starter", 50, 999),
            ("professional", 150, 2499),
            ("enterprise", 500, 7999),
        ]
    finally:
        engine.dispose()

    command.downgrade(cfg, "base")
