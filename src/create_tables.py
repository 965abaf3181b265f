# create_tables.py
import logging

from database import engine, Base
# Import every model so it registers with Base
from modules.documents.models.user import User
from modules.documents.models.document import Document

logger = logging.getLogger(__name__)


def create_tables():
    """Creates every table in the database"""
    logger.info("Tables to create: %s", list(Base.metadata.tables.keys()))
    Base.metadata.create_all(bind=engine)


if __name__ == "__main__":
    create_tables()
