"""Create all tables. Run on app startup."""
import logging

from medshop.db.base import Base
from medshop.db.session import engine
from medshop import models  # noqa: F401 - register models

logger = logging.getLogger(__name__)


def init_db(bind=None):
    target = bind or engine
    Base.metadata.create_all(bind=target)
    logger.info(f"[DB] Tables ready on {target.url.render_as_string(hide_password=True)}")
