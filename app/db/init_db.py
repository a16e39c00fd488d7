import logging

from app.db.session import engine
from app.db.base import Base
import app.db.models  # noqa: F401  registers every model

logger = logging.getLogger(__name__)


def init_db(bind=engine):
    Base.metadata.create_all(bind=bind)
    logger.info("Database tables ensured")
