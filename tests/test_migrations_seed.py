import os
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, func, inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from app.pdv.db.models import PaymentMethodSetting, PaymentSettings, PosCashSession, User
from app.pdv.db.seed import run_seed


def _run_migrations(database_url: str):
    os.environ["DATABASE_URL"] = database_url
    config = Config("alembic.ini")
    config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(config, "head")


def test_migrations_apply(tmp_path: Path):
    database_url = f"sqlite+pysqlite:///{tmp_path / 'migrations.db'}"
    _run_migrations(database_url)

    engine = create_engine(database_url, future=True)
    inspector = inspect(engine)
    tables = set(inspector.get_table_names())

    for table in (
        "users",
        "customers",
        "customer_purchases",
        "products",
        "stock_movements",
        "payment_settings",
        "payment_method_settings",
        "pos_sales",
        "pos_sale_lines",
        "pos_payments",
        "deferred_payments",
        "pos_cash_sessions",
        "pos_cash_movements",
        "idempotency_records",
        "audit_events",
    ):
        assert table in tables

    indexes = {index["name"] for index in inspector.get_indexes("pos_cash_sessions")}
    assert "uq_pos_cash_sessions_open_cashier" in indexes


def test_open_session_index_allows_closed_history(tmp_path: Path):
    database_url = f"sqlite+pysqlite:///{tmp_path / 'sessions.db'}"
    _run_migrations(database_url)

    engine = create_engine(database_url, future=True)
    SessionLocal = sessionmaker(bind=engine, future=True)

    with SessionLocal() as db:
        run_seed(db)
        admin = db.execute(select(User)).scalars().first()

        def session(status: str) -> PosCashSession:
            return PosCashSession(
                cashier_user_id=admin.id,
                cashier_name=admin.full_name,
                status=status,
                opening_amount=0,
                total_sales=0,
                total_cash_in=0,
                total_cash_out=0,
            )

        db.add_all([session("CLOSED"), session("CLOSED"), session("OPEN")])
        db.commit()

        db.add(session("OPEN"))
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
        else:
            raise AssertionError("second open session was accepted")


def test_seed_is_idempotent(tmp_path: Path):
    database_url = f"sqlite+pysqlite:///{tmp_path / 'seed.db'}"
    _run_migrations(database_url)

    engine = create_engine(database_url, future=True)
    SessionLocal = sessionmaker(bind=engine, future=True)

    with SessionLocal() as db:
        run_seed(db)
        users_count = db.scalar(select(func.count()).select_from(User))
        methods_count = db.scalar(select(func.count()).select_from(PaymentMethodSetting))

        run_seed(db)
        assert db.scalar(select(func.count()).select_from(User)) == users_count == 1
        assert db.scalar(select(func.count()).select_from(PaymentMethodSetting)) == methods_count == 6
        assert db.scalar(select(func.count()).select_from(PaymentSettings)) == 1
        assert db.scalar(select(User.role).where(User.username == "admin")) == "ADMIN"
