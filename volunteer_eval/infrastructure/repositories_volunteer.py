# volunteer_eval/infrastructure/repositories_volunteer.py
from __future__ import annotations

from datetime import date

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError as SQLIntegrityError, SQLAlchemyError

from .exceptions import DuplicateRecordError, VolunteerNotFoundError
from .logging import log_database_operation as log_op
from .models import FreezeRecordORM, VolunteerORM
from .repositories_base import BaseRepository as GenericBaseRepository

VOLUNTEER_SORT_COLUMNS = {
    "full_name": VolunteerORM.full_name,
    "created_at": VolunteerORM.created_at,
    "join_date": VolunteerORM.join_date,
    "role_type": VolunteerORM.role_type,
}


class VolunteerRepo(GenericBaseRepository[VolunteerORM]):
    """
    Repository for volunteer records.

    Besides CRUD it exposes the row lock used to serialize freeze decisions
    and the per-volunteer freeze summaries shown in listings.
    """

    model = VolunteerORM
    not_found = VolunteerNotFoundError

    @log_op("get_volunteer_by_phone")
    def get_by_phone(self, phone: str) -> VolunteerORM | None:
        try:
            return self.s.query(VolunteerORM).filter_by(phone=phone.strip()).one_or_none()
        except SQLAlchemyError as e:
            self._handle_error(e, "get_volunteer_by_phone")

    @log_op("lock_volunteer")
    def lock_for_update(self, volunteer_id: int) -> VolunteerORM:
        """Load the volunteer with a row lock held until the transaction ends."""
        try:
            volunteer = self.s.execute(
                select(VolunteerORM).where(VolunteerORM.id == volunteer_id).with_for_update()
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            self._handle_error(e, "lock_volunteer")
        if volunteer is None:
            raise VolunteerNotFoundError(volunteer_id)
        return volunteer

    @log_op("create_volunteer")
    def create_volunteer(self, **fields) -> VolunteerORM:
        try:
            return self.create(**fields)
        except SQLIntegrityError as e:
            raise DuplicateRecordError("phone", fields.get("phone")) from e
        except SQLAlchemyError as e:
            self._handle_error(e, "create_volunteer")

    @log_op("update_volunteer")
    def update_volunteer(self, volunteer: VolunteerORM, **fields) -> VolunteerORM:
        try:
            return self.update(volunteer, **fields)
        except SQLIntegrityError as e:
            raise DuplicateRecordError("phone", fields.get("phone")) from e
        except SQLAlchemyError as e:
            self._handle_error(e, "update_volunteer")

    @log_op("search_volunteers")
    def search(
        self,
        search: str | None = None,
        role_type: str | None = None,
        is_active: bool | None = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[VolunteerORM], int]:
        """Filtered, sorted page of volunteers plus the unpaged total."""
        q = self.s.query(VolunteerORM)
        if search:
            pattern = f"%{search}%"
            q = q.filter(or_(VolunteerORM.full_name.ilike(pattern), VolunteerORM.phone.like(pattern)))
        if role_type:
            q = q.filter(VolunteerORM.role_type == role_type)
        if is_active is not None:
            q = q.filter(VolunteerORM.is_active.is_(is_active))

        column = VOLUNTEER_SORT_COLUMNS.get(sort_by, VolunteerORM.created_at)
        q = q.order_by(column.asc() if sort_order == "asc" else column.desc(), VolunteerORM.id)

        try:
            total = q.count()
            if offset:
                q = q.offset(offset)
            if limit:
                q = q.limit(limit)
            return q.all(), total
        except SQLAlchemyError as e:
            self._handle_error(e, "search_volunteers")

    @log_op("freeze_counts")
    def freeze_counts(self, volunteer_ids: list[int], year: int) -> dict[int, int]:
        """Active freezes per volunteer in ``year``."""
        if not volunteer_ids:
            return {}
        rows = (
            self.s.query(FreezeRecordORM.volunteer_id, func.count(FreezeRecordORM.id))
            .filter(
                FreezeRecordORM.volunteer_id.in_(volunteer_ids),
                FreezeRecordORM.freeze_year == year,
                FreezeRecordORM.is_active.is_(True),
            )
            .group_by(FreezeRecordORM.volunteer_id)
            .all()
        )
        return {vid: int(n) for vid, n in rows}

    @log_op("currently_frozen")
    def currently_frozen(self, volunteer_ids: list[int], today: date) -> set[int]:
        """Volunteers with an active freeze covering ``today``."""
        if not volunteer_ids:
            return set()
        rows = (
            self.s.query(FreezeRecordORM.volunteer_id)
            .filter(
                FreezeRecordORM.volunteer_id.in_(volunteer_ids),
                FreezeRecordORM.is_active.is_(True),
                FreezeRecordORM.start_date <= today,
                FreezeRecordORM.end_date >= today,
            )
            .distinct()
            .all()
        )
        return {vid for (vid,) in rows}

    def count_by(self, column_name: str) -> dict[str, int]:
        column = getattr(VolunteerORM, column_name)
        rows = self.s.query(column, func.count(VolunteerORM.id)).group_by(column).all()
        return {str(k): int(n) for k, n in rows}
