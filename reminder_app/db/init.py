"""Initialize database tables."""
import logging
from typing import Optional

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

from reminder_app.models.in_app_notification import InAppNotification  # noqa: F401
from reminder_app.models.reminder import Reminder  # noqa: F401
from reminder_app.models.sent_log import SentLog  # noqa: F401
from reminder_app.models.snooze_history import SnoozeHistory  # noqa: F401
from reminder_app.models.user import User  # noqa: F401

logger = logging.getLogger(__name__)


def init_db(bind: Optional[Engine] = None):
    """Create all tables in the database."""
    if bind is None:
        from reminder_app.db.config import engine as bind
    logger.info("Creating all tables...")
    SQLModel.metadata.create_all(bind)
    logger.info("Tables created successfully.")


if __name__ == "__main__":
    init_db()
