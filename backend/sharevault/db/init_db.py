import logging

from sqlalchemy.engine import Engine

from sharevault.db.base import Base

logger = logging.getLogger(__name__)


def init_db(bind: Engine) -> None:
    # Tables are created directly; there are no migrations yet
    Base.metadata.create_all(bind=bind)
    logger.info("Database tables ensured on %s", bind.url.render_as_string(hide_password=True))
