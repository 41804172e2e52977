import logging
import os

APP_NAME = os.getenv("APP_NAME", "catalog")

# Optional prefix for routes. Leave empty ("") if the gateway strips it.
API_PREFIX = os.getenv("API_PREFIX", "").strip()
if API_PREFIX and not API_PREFIX.startswith("/"):
    API_PREFIX = "/" + API_PREFIX
API_PREFIX = API_PREFIX.rstrip("/")

# In-memory by default; the store is re-seeded on every process start
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")
SQL_ECHO = os.getenv("SQL_ECHO", "0").lower() in ("1", "true", "yes")
SEED_DATA = os.getenv("SEED_DATA", "1").lower() in ("1", "true", "yes")

DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "25"))
# 0 keeps page size unbounded
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "0"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LISTEN_PORT = int(os.getenv("LISTEN_PORT", "8000"))


def configure_logging():
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
