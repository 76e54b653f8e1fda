import os
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


class Settings:
    @staticmethod
    def _get_int(name: str, default: int) -> int:
        return int(os.getenv(name, str(default)))

    @staticmethod
    def _get_bool(name: str, default: bool) -> bool:
        raw = os.getenv(name)
        if raw is None:
            return default
        return raw.strip().lower() in {"1", "true", "yes", "on"}

    @property
    def DATABASE_URL(self) -> str:
        database_url = os.getenv("DATABASE_URL", "").strip()
        if not database_url:
            raise ValueError("DATABASE_URL is required")
        return database_url

    @property
    def DB_CONNECT_RETRIES(self) -> int:
        return self._get_int("DB_CONNECT_RETRIES", 10)

    @property
    def DB_CONNECT_RETRY_DELAY_SECONDS(self) -> int:
        return self._get_int("DB_CONNECT_RETRY_DELAY_SECONDS", 2)

    @property
    def JWT_SECRET(self) -> str:
        return os.getenv("JWT_SECRET", "change-me-in-production")

    @property
    def JWT_ALGORITHM(self) -> str:
        return os.getenv("JWT_ALGORITHM", "HS256")

    @property
    def RESERVATION_TTL_MINUTES(self) -> int:
        return self._get_int("RESERVATION_TTL_MINUTES", 5)

    @property
    def MAX_RESERVATION_TTL_MINUTES(self) -> int:
        return self._get_int("MAX_RESERVATION_TTL_MINUTES", 60)

    @property
    def MAX_CARDS_PER_BUYER(self) -> int:
        return self._get_int("MAX_CARDS_PER_BUYER", 50)

    @property
    def MAX_PAGE_SIZE(self) -> int:
        return self._get_int("MAX_PAGE_SIZE", 100)

    @property
    def RESERVATION_SWEEP_INTERVAL_SECONDS(self) -> int:
        return self._get_int("RESERVATION_SWEEP_INTERVAL_SECONDS", 0)

    @property
    def CARD_POOL_SIZE(self) -> int:
        return self._get_int("CARD_POOL_SIZE", 2000)

    @property
    def DEFAULT_CARD_PRICE(self) -> Decimal:
        return Decimal(os.getenv("DEFAULT_CARD_PRICE", "1.00"))

    @property
    def SEED_CARD_POOL(self) -> bool:
        return self._get_bool("SEED_CARD_POOL", False)

    @property
    def CORS_ORIGINS(self) -> str:
        return os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:3001")


settings = Settings()

# Validate critical settings
if settings.JWT_SECRET == "change-me-in-production":
    import warnings
    warnings.warn("JWT_SECRET is using default value. Change it in production!", UserWarning)
