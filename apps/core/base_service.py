import logging

from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from config import settings
from apps.core.errors import BackendTimeout

logger = logging.getLogger(__name__)


class BaseService:
    def __init__(self, session: Session):
        self.session = session

    def save(self, obj):
        """Add, commit and refresh ``obj``.

        The write runs on the caller's thread. The database gives up after
        INSERT_TIMEOUT (see database.connect_args_for); that surfaces here as
        BackendTimeout with the transaction rolled back.
        """
        self.session.add(obj)
        try:
            self.session.commit()
        except OperationalError as e:
            self.session.rollback()
            logger.error("Write of %s failed: %s", type(obj).__name__, e)
            raise BackendTimeout(f"Insert timeout after {settings.INSERT_TIMEOUT:g} seconds") from e
        self.session.refresh(obj)
        return obj
