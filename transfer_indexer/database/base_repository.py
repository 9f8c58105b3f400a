# transfer_indexer/database/base_repository.py

from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy.orm import Session

from ..core.logging import IndexerLogger, log_with_context, DEBUG, ERROR


ModelT = TypeVar('ModelT')


class BaseRepository(Generic[ModelT]):
    """
    Table access shared by repositories.

    Repositories never open or commit sessions; the caller owns the unit of
    work and passes its session in.
    """

    def __init__(self, db_manager, model_class: Type[ModelT]):
        self.db_manager = db_manager
        self.model_class = model_class
        self.logger = IndexerLogger.get_logger(
            f'database.repository.{model_class.__tablename__}'
        )

    def _log_failure(self, action: str, error: Exception, **context) -> None:
        log_with_context(self.logger, ERROR, f"{self.model_class.__name__} {action} failed",
                         error=str(error), exception_type=type(error).__name__, **context)

    def get_by_id(self, session: Session, record_id: int) -> Optional[ModelT]:
        try:
            return session.get(self.model_class, record_id)
        except Exception as e:
            self._log_failure("lookup", e)
            raise

    def bulk_create(self, session: Session, rows: List[Dict[str, Any]]) -> int:
        """Insert plain column mappings and flush; returns the number of rows written."""
        if not rows:
            return 0

        try:
            session.bulk_insert_mappings(self.model_class, rows)
            session.flush()
        except Exception as e:
            self._log_failure("bulk insert", e, inserted=len(rows))
            raise

        log_with_context(self.logger, DEBUG, "Rows written", inserted=len(rows))
        return len(rows)

    def count(self, session: Session, **filters) -> int:
        try:
            return session.query(self.model_class).filter_by(**filters).count()
        except Exception as e:
            self._log_failure("count", e)
            raise
