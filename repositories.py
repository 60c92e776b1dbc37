"""Per-user storage access for transactions and incomes."""
import logging
from abc import ABC, abstractmethod

from models import db, Transaction, Income

logger = logging.getLogger(__name__)


class RecordRepository(ABC):
    """Loads the records owned by one user."""

    @abstractmethod
    def find_by_user(self, user_id):
        """Return the user's records ordered by date, then id."""


class SQLAlchemyRepository(RecordRepository):
    model = None

    def find_by_user(self, user_id):
        return (self.model.query
                .filter_by(user_id=user_id)
                .order_by(self.model.date, self.model.id)
                .all())

    def get_for_user(self, record_id, user_id):
        return self.model.query.filter_by(id=record_id, user_id=user_id).first()

    def add(self, record):
        db.session.add(record)
        db.session.commit()
        logger.info('Saved %s %s for user %s', self.model.__name__, record.id, record.user_id)
        return record

    def save(self):
        db.session.commit()

    def delete(self, record):
        record_id, user_id = record.id, record.user_id
        db.session.delete(record)
        db.session.commit()
        logger.info('Deleted %s %s for user %s', self.model.__name__, record_id, user_id)


class TransactionRepository(SQLAlchemyRepository):
    model = Transaction


class IncomeRepository(SQLAlchemyRepository):
    model = Income
