import os
from typing import Optional

from dotenv import load_dotenv

# Load .env file variables into environment
load_dotenv()


def _get_int_env(name: str, default: Optional[int] = None) -> Optional[int]:
    """Reads an integer environment variable, returning `default` when it is unset."""
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} environment variable must be an integer.")


class Settings:
    """Configuration settings loaded from environment variables."""

    def get_database_url(self) -> Optional[str]:
        """Returns the primary DATABASE_URL, if set."""
        return os.getenv("DATABASE_URL")

    # --- Database settings Getters using os.getenv ---
    def get_postgres_user(self) -> str | None:
        return os.getenv("DB_USER")

    def get_postgres_password(self) -> str | None:
        return os.getenv("DB_PASSWORD")

    def get_postgres_db(self) -> str | None:
        return os.getenv("DB_NAME")

    def get_postgres_host(self) -> str | None:
        return os.getenv("DB_HOST")

    def get_postgres_port(self) -> int | None:
        """Returns the PostgreSQL port as an integer, or None if not set."""
        return _get_int_env("DB_PORT")

    # --- DB Pool Size Getters ---
    def get_main_db_pool_min_size(self) -> int:
        """Returns the minimum pool size for the main DB."""
        return _get_int_env("MAIN_DB_POOL_MIN_SIZE", 1)

    def get_main_db_pool_max_size(self) -> int:
        """Returns the maximum pool size for the main DB."""
        return _get_int_env("MAIN_DB_POOL_MAX_SIZE", 10)

    def get_db_echo(self) -> bool:
        """Returns True if SQL statements should be echoed by the engine."""
        return os.getenv("DB_ECHO", "false").lower() in ("1", "true", "yes")

    # --- Logging Settings ---
    def get_log_level(self, default: str = "INFO") -> str:
        """Gets the configured log level, defaulting if not set."""
        return os.getenv("LOG_LEVEL", default).upper()
