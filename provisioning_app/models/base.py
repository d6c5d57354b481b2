# provisioning_app/models/base.py
"""
Shared SQLAlchemy handle and abstract base model.
"""

from datetime import datetime, timezone

from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import SQLAlchemyError

from ..errors import PersistenceError

db = SQLAlchemy()


def utcnow():
    """Naive UTC timestamp for DateTime columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaseModel(db.Model):
    """Abstract base for all provisioning models"""

    __abstract__ = True

    @staticmethod
    def commit(action):
        """
        Commit the current session, rolling back and raising PersistenceError on failure.

        Args:
            action: Short description of the write, used in the log and error message
        """
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Database error while {action}: {str(e)}")
            raise PersistenceError(f"Database error while {action}: {str(e)}") from e

    @staticmethod
    def execute_write(statement, action):
        """
        Execute a bulk UPDATE/DELETE statement and commit it.

        Returns:
            The number of rows the statement affected
        """
        try:
            result = db.session.execute(statement)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Database error while {action}: {str(e)}")
            raise PersistenceError(f"Database error while {action}: {str(e)}") from e
        return result.rowcount
