import logging
import random
import time
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from app.config import settings
from app.models.database import Base, _normalize_database_url, engine
from app.models import CardInventory, PurchaseOrder  # noqa: F401 - register models

logger = logging.getLogger(__name__)

# 75-ball layout: five columns of 15 numbers; the N column has a free centre square.
BINGO_COLUMNS = ((1, 15), (16, 30), (31, 45), (46, 60), (61, 75))


def wait_for_db(retries: int, retry_delay_seconds: int) -> None:
    """Wait for database to accept connections before running migrations."""
    last_error = None
    for attempt in range(1, retries + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database connection established on attempt %s", attempt)
            return
        except OperationalError as exc:
            last_error = exc
            logger.warning(
                "Database not reachable yet (attempt %s/%s): %s",
                attempt,
                retries,
                exc,
            )
            if attempt < retries:
                time.sleep(retry_delay_seconds)

    raise RuntimeError(
        "Database is unreachable after "
        f"{retries} attempts. Check DATABASE_URL and ensure the DB server is running."
    ) from last_error


def init_db():
    wait_for_db(
        retries=settings.DB_CONNECT_RETRIES,
        retry_delay_seconds=settings.DB_CONNECT_RETRY_DELAY_SECONDS,
    )
    if settings.DATABASE_URL.startswith("sqlite://"):
        Base.metadata.create_all(bind=engine)
        return

    run_migrations()


def run_migrations() -> None:
    """Apply Alembic migrations to the latest revision."""
    from alembic import command
    from alembic.config import Config

    project_root = Path(__file__).resolve().parent.parent
    alembic_ini = project_root / "alembic.ini"
    script_location = project_root / "alembic"
    if not alembic_ini.exists() or not script_location.exists():
        raise RuntimeError("Alembic configuration is missing (alembic.ini or alembic/ directory not found).")

    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(script_location))
    config.set_main_option("sqlalchemy.url", _normalize_database_url(settings.DATABASE_URL))
    command.upgrade(config, "head")


def card_layout(card_number: int) -> list[int]:
    """Printed numbers of a card, column by column. The same card number always yields the same layout."""
    rng = random.Random(card_number)
    numbers: list[int] = []
    for index, (low, high) in enumerate(BINGO_COLUMNS):
        count = 4 if index == 2 else 5
        numbers.extend(sorted(rng.sample(range(low, high + 1), count)))
    return numbers


def seed_card_pool(db_session, pool_size: int) -> int:
    """Insert cards 1..pool_size when the inventory is empty. Returns the number of cards created."""
    if db_session.query(CardInventory.card_number).first():
        return 0

    price = settings.DEFAULT_CARD_PRICE
    db_session.add_all(
        CardInventory(
            card_number=number,
            numbers=card_layout(number),
            price=price,
            is_available=True,
        )
        for number in range(1, pool_size + 1)
    )
    db_session.commit()
    logger.info("Seeded card inventory with %s cards", pool_size)
    return pool_size
