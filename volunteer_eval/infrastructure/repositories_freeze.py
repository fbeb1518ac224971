# volunteer_eval/infrastructure/repositories_freeze.py
from __future__ import annotations

from datetime import date

from sqlalchemy.exc import IntegrityError as SQLIntegrityError, SQLAlchemyError

from .exceptions import FreezeLimitExceededError
from .logging import log_database_operation as log_op
from .models import FreezeRecordORM
from .repositories_base import BaseRepository as GenericBaseRepository


class FreezeRepo(GenericBaseRepository[FreezeRecordORM]):
    """Repository for freeze records and their per-year slots."""

    model = FreezeRecordORM

    @log_op("active_freeze_slots")
    def active_slots(self, volunteer_id: int, year: int) -> list[int]:
        rows = (
            self.s.query(FreezeRecordORM.slot)
            .filter(
                FreezeRecordORM.volunteer_id == volunteer_id,
                FreezeRecordORM.freeze_year == year,
                FreezeRecordORM.is_active.is_(True),
            )
            .all()
        )
        return sorted(slot for (slot,) in rows if slot is not None)

    def count_active(self, volunteer_id: int, year: int) -> int:
        return self.count(
            FreezeRecordORM.volunteer_id == volunteer_id,
            FreezeRecordORM.freeze_year == year,
            FreezeRecordORM.is_active.is_(True),
        )

    @log_op("create_freeze_record")
    def create_freeze(
        self,
        volunteer_id: int,
        year: int,
        slot: int,
        limit: int,
        start_date: date,
        end_date: date,
        reason: str,
        evaluation_month: int | None = None,
        evaluation_year: int | None = None,
        approved_by: int | None = None,
    ) -> FreezeRecordORM:
        try:
            return self.create(
                volunteer_id=volunteer_id,
                freeze_year=year,
                slot=slot,
                start_date=start_date,
                end_date=end_date,
                reason=reason,
                evaluation_month=evaluation_month,
                evaluation_year=evaluation_year,
                approved_by=approved_by,
                is_active=True,
            )
        except SQLIntegrityError as e:
            raise FreezeLimitExceededError(volunteer_id, year, limit) from e
        except SQLAlchemyError as e:
            self._handle_error(e, "create_freeze_record")

    @log_op("deactivate_evaluation_freeze")
    def deactivate_for_evaluation(self, volunteer_id: int, month: int, year: int) -> int:
        """Deactivate the freezes recorded for one evaluation period, releasing their slots."""
        records = self.list(
            FreezeRecordORM.volunteer_id == volunteer_id,
            FreezeRecordORM.evaluation_month == month,
            FreezeRecordORM.evaluation_year == year,
            FreezeRecordORM.is_active.is_(True),
        )
        for record in records:
            record.is_active = False
            record.slot = None
        self.s.flush()
        return len(records)

    def update_for_evaluation(
        self, volunteer_id: int, month: int, year: int, *, reason: str, start_date: date, end_date: date
    ) -> int:
        """Carry edited freeze details onto the active freezes of one evaluation period."""
        records = self.list(
            FreezeRecordORM.volunteer_id == volunteer_id,
            FreezeRecordORM.evaluation_month == month,
            FreezeRecordORM.evaluation_year == year,
            FreezeRecordORM.is_active.is_(True),
        )
        for record in records:
            record.reason = reason
            record.start_date = start_date
            record.end_date = end_date
        self.s.flush()
        return len(records)

    def active_for_year(self, year: int) -> list[FreezeRecordORM]:
        return self.list(
            FreezeRecordORM.freeze_year == year,
            FreezeRecordORM.is_active.is_(True),
            order_by=[FreezeRecordORM.start_date],
        )
