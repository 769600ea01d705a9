import logging

from billing_api.db.session import engine
from billing_api.db.base import Base
import billing_api.db.models  # noqa: F401  (registers every table on Base.metadata)

logger = logging.getLogger(__name__)


def init_db() -> None:
    """Create any missing tables. Used when Alembic migrations are not run."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")
