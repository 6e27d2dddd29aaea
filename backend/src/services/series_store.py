"""
Persistence gateway for recurring series.

SeriesStore is the only place that reads and writes templates, instances and
exceptions. It provides:
- A transaction scope owning a whole mutation (commit on success, rollback
  on every failure path)
- Row locking of a template before its instances are read
- Lookups keyed by GUID and by (template, occurrence date)
- Exception upserts and bulk reassignment for series splits

Design:
- Callers never commit; the transaction scope does
- Persistence errors are translated once, at the transaction boundary:
  IntegrityError -> ConflictError, other SQLAlchemyError ->
  TransactionFailureError
"""

from contextlib import contextmanager
from datetime import date
from typing import Dict, Iterator, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, lazyload

from backend.src.models import EventException, EventInstance, RecurringTemplate
from backend.src.services.exceptions import (
    ConflictError,
    NotFoundError,
    TransactionFailureError,
)
from backend.src.services.guid import GuidService
from backend.src.utils.logging_config import get_logger


logger = get_logger("db")


class SeriesStore:
    """
    Transactional gateway over the series tables.

    Usage:
        >>> store = SeriesStore(db_session)
        >>> with store.transaction("update series"):
        ...     template = store.lock_template(template.id)
        ...     instances = store.instances_by_date(template.id)
    """

    def __init__(self, db: Session):
        """
        Initialize the store.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db
        self._is_sqlite = self._check_is_sqlite()

    def _check_is_sqlite(self) -> bool:
        """Check if the database backend is SQLite."""
        bind = self.db.get_bind()
        return bind is not None and bind.dialect.name == "sqlite"

    # =========================================================================
    # Transactions
    # =========================================================================

    @contextmanager
    def transaction(self, operation: str) -> Iterator["SeriesStore"]:
        """
        Run a mutation as one unit of work.

        Commits when the block exits normally. Any exception rolls back every
        change made to templates, instances and exceptions in the block.

        Args:
            operation: Short description used in errors and logs

        Raises:
            ConflictError: If a uniqueness constraint was violated
            TransactionFailureError: If any other persistence error occurred
        """
        try:
            yield self
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Integrity error during {operation}: {e}")
            raise ConflictError(f"Conflicting data during {operation}") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error during {operation}: {e}")
            raise TransactionFailureError(operation, e) from e
        except Exception:
            self.db.rollback()
            raise

    def flush(self) -> None:
        self.db.flush()

    # =========================================================================
    # Templates
    # =========================================================================

    def get_template_by_guid(self, guid: str) -> RecurringTemplate:
        """
        Get a template by GUID.

        Raises:
            NotFoundError: If the GUID is malformed or no template has it
        """
        if not GuidService.validate_guid(guid, "rec"):
            raise NotFoundError("Series", guid)

        try:
            uuid_value = GuidService.parse_guid(guid, "rec")
        except ValueError:
            raise NotFoundError("Series", guid)

        template = (
            self.db.query(RecurringTemplate)
            .filter(RecurringTemplate.uuid == uuid_value)
            .first()
        )
        if not template:
            raise NotFoundError("Series", guid)
        return template

    def lock_template(self, template_id: int) -> RecurringTemplate:
        """
        Reload a template holding a row lock until the transaction ends.

        FOR UPDATE is only issued on PostgreSQL; SQLite serializes writers
        on its own.
        """
        query = self.db.query(RecurringTemplate).filter(RecurringTemplate.id == template_id)
        if not self._is_sqlite:
            query = query.options(lazyload('*')).with_for_update()

        template = query.populate_existing().first()
        if not template:
            raise NotFoundError("Series", template_id)
        return template

    def find_templates(self, title: str, anchor_start) -> List[RecurringTemplate]:
        """Templates sharing a title and anchor start (duplicate detection)."""
        return (
            self.db.query(RecurringTemplate)
            .filter(
                RecurringTemplate.title == title,
                RecurringTemplate.anchor_start == anchor_start,
            )
            .all()
        )

    def list_templates(self, limit: int, offset: int) -> List[RecurringTemplate]:
        return (
            self.db.query(RecurringTemplate)
            .order_by(RecurringTemplate.anchor_start.asc(), RecurringTemplate.id.asc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    def count_templates(self) -> int:
        return self.db.query(func.count(RecurringTemplate.id)).scalar() or 0

    def add_template(self, template: RecurringTemplate) -> RecurringTemplate:
        self.db.add(template)
        self.db.flush()
        return template

    def delete_template(self, template: RecurringTemplate) -> None:
        """Delete a template; instances and exceptions go with it."""
        self.db.delete(template)
        self.db.flush()

    # =========================================================================
    # Instances
    # =========================================================================

    def get_instance_by_guid(self, guid: str) -> EventInstance:
        """
        Get an instance by GUID.

        Raises:
            NotFoundError: If the GUID is malformed or no instance has it
        """
        if not GuidService.validate_guid(guid, "ins"):
            raise NotFoundError("Instance", guid)

        try:
            uuid_value = GuidService.parse_guid(guid, "ins")
        except ValueError:
            raise NotFoundError("Instance", guid)

        instance = (
            self.db.query(EventInstance)
            .filter(EventInstance.uuid == uuid_value)
            .first()
        )
        if not instance:
            raise NotFoundError("Instance", guid)
        return instance

    def get_instance(self, template_id: int, occurrence_date: date) -> Optional[EventInstance]:
        return (
            self.db.query(EventInstance)
            .filter(
                EventInstance.template_id == template_id,
                EventInstance.occurrence_date == occurrence_date,
            )
            .first()
        )

    def list_instances(self, template_id: int, from_date: Optional[date] = None) -> List[EventInstance]:
        """Instances of a template ordered by occurrence date."""
        query = self.db.query(EventInstance).filter(EventInstance.template_id == template_id)
        if from_date is not None:
            query = query.filter(EventInstance.occurrence_date >= from_date)
        return query.order_by(EventInstance.occurrence_date.asc()).all()

    def instances_by_date(self, template_id: int) -> Dict[date, EventInstance]:
        return {instance.occurrence_date: instance for instance in self.list_instances(template_id)}

    def next_instance(self, template_id: int, after) -> Optional[EventInstance]:
        """First non-cancelled instance starting at or after a moment."""
        return (
            self.db.query(EventInstance)
            .filter(
                EventInstance.template_id == template_id,
                EventInstance.is_cancelled.is_(False),
                EventInstance.start_at >= after,
            )
            .order_by(EventInstance.start_at.asc())
            .first()
        )

    def add_instance(self, instance: EventInstance) -> EventInstance:
        self.db.add(instance)
        return instance

    def delete_instance(self, instance: EventInstance) -> None:
        self.db.delete(instance)

    def count_instances(self, template_id: int) -> int:
        return (
            self.db.query(func.count(EventInstance.id))
            .filter(EventInstance.template_id == template_id)
            .scalar()
        ) or 0

    # =========================================================================
    # Exceptions
    # =========================================================================

    def get_exception(self, template_id: int, occurrence_date: date) -> Optional[EventException]:
        return (
            self.db.query(EventException)
            .filter(
                EventException.template_id == template_id,
                EventException.occurrence_date == occurrence_date,
            )
            .first()
        )

    def exceptions_by_date(self, template_id: int) -> Dict[date, EventException]:
        exceptions = (
            self.db.query(EventException)
            .filter(EventException.template_id == template_id)
            .all()
        )
        return {exc.occurrence_date: exc for exc in exceptions}

    def save_exception(
        self,
        template_id: int,
        occurrence_date: date,
        kind: str,
        overrides: Optional[dict] = None,
    ) -> EventException:
        """
        Create or replace the exception for (template, date).

        Overrides present in `overrides` replace stored values; absent keys
        keep what the exception already holds.
        """
        exception = self.get_exception(template_id, occurrence_date)
        if exception is None:
            exception = EventException(
                template_id=template_id,
                occurrence_date=occurrence_date,
            )
            self.db.add(exception)

        exception.kind = kind
        for field, value in (overrides or {}).items():
            setattr(exception, field, value)

        self.db.flush()
        return exception

    def delete_exception(self, exception: EventException) -> None:
        self.db.delete(exception)
        self.db.flush()

    def count_exceptions(self, template_id: int) -> int:
        return (
            self.db.query(func.count(EventException.id))
            .filter(EventException.template_id == template_id)
            .scalar()
        ) or 0

    # =========================================================================
    # Series split
    # =========================================================================

    def reassign_from(self, source_id: int, target_id: int, pivot: date) -> int:
        """
        Move instances and exceptions dated on/after pivot to another template.

        Returns:
            Number of instances moved
        """
        moved = (
            self.db.query(EventInstance)
            .filter(
                EventInstance.template_id == source_id,
                EventInstance.occurrence_date >= pivot,
            )
            .update({EventInstance.template_id: target_id}, synchronize_session=False)
        )
        (
            self.db.query(EventException)
            .filter(
                EventException.template_id == source_id,
                EventException.occurrence_date >= pivot,
            )
            .update({EventException.template_id: target_id}, synchronize_session=False)
        )
        # Bulk updates bypass the identity map
        self.db.expire_all()
        return moved
