# volunteer_eval/infrastructure/repositories_alert.py
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError as SQLIntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload

from ..domain.models import OpenAlertKey
from .exceptions import AlertAlreadyOpenError, AlertAlreadyResolvedError, AlertNotFoundError
from .logging import log_database_operation as log_op
from .models import AlertRecordORM, VolunteerORM
from .repositories_base import BaseRepository as GenericBaseRepository

_SEVERITY_ORDER = case(
    (AlertRecordORM.severity == "high", 3),
    (AlertRecordORM.severity == "medium", 2),
    else_=1,
)


class AlertRepo(GenericBaseRepository[AlertRecordORM]):
    """
    Repository for alert records.

    An alert is open while ``open_marker`` is 1; resolving clears the marker so
    a later alert of the same type can be opened.
    """

    model = AlertRecordORM
    not_found = AlertNotFoundError

    @log_op("open_alert_keys")
    def open_keys(self) -> list[OpenAlertKey]:
        rows = (
            self.s.query(AlertRecordORM.volunteer_id, AlertRecordORM.alert_type)
            .filter(AlertRecordORM.is_resolved.is_(False))
            .all()
        )
        return [OpenAlertKey(vid, alert_type) for vid, alert_type in rows]

    def get_open(self, volunteer_id: int, alert_type: str) -> AlertRecordORM | None:
        return (
            self.s.query(AlertRecordORM)
            .filter_by(volunteer_id=volunteer_id, alert_type=alert_type, is_resolved=False)
            .one_or_none()
        )

    @log_op("create_alert")
    def create_alert(
        self,
        volunteer_id: int,
        alert_type: str,
        severity: str,
        alert_message: str,
        trigger_condition: dict[str, Any],
        consecutive_months: int = 0,
        criteria_id: int | None = None,
    ) -> AlertRecordORM:
        if self.get_open(volunteer_id, alert_type) is not None:
            raise AlertAlreadyOpenError(volunteer_id, alert_type)
        try:
            return self.create(
                volunteer_id=volunteer_id,
                alert_type=alert_type,
                severity=severity,
                alert_message=alert_message,
                trigger_condition=trigger_condition,
                consecutive_months=consecutive_months,
                criteria_id=criteria_id,
                is_resolved=False,
                open_marker=1,
            )
        except SQLIntegrityError as e:
            raise AlertAlreadyOpenError(volunteer_id, alert_type) from e
        except SQLAlchemyError as e:
            self._handle_error(e, "create_alert")

    @log_op("resolve_alert")
    def resolve(
        self, alert: AlertRecordORM, resolved_by: int, notes: str | None, now: datetime
    ) -> AlertRecordORM:
        if alert.is_resolved:
            raise AlertAlreadyResolvedError(alert.id)
        return self.update(
            alert,
            is_resolved=True,
            open_marker=None,
            resolved_by=resolved_by,
            resolved_at=now,
            resolution_notes=notes,
        )

    @log_op("search_alerts")
    def search(
        self,
        volunteer_id: int | None = None,
        alert_type: str | None = None,
        severity: str | None = None,
        is_resolved: bool | None = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[AlertRecordORM], int]:
        q = self.s.query(AlertRecordORM).options(
            joinedload(AlertRecordORM.volunteer), joinedload(AlertRecordORM.criterion)
        )
        if volunteer_id is not None:
            q = q.filter(AlertRecordORM.volunteer_id == volunteer_id)
        if alert_type is not None:
            q = q.filter(AlertRecordORM.alert_type == alert_type)
        if severity is not None:
            q = q.filter(AlertRecordORM.severity == severity)
        if is_resolved is not None:
            q = q.filter(AlertRecordORM.is_resolved.is_(is_resolved))

        column = {
            "severity": _SEVERITY_ORDER,
            "alert_type": AlertRecordORM.alert_type,
        }.get(sort_by, AlertRecordORM.created_at)
        q = q.order_by(column.asc() if sort_order == "asc" else column.desc(), AlertRecordORM.id.desc())
        try:
            total = q.count()
            if offset:
                q = q.offset(offset)
            if limit:
                q = q.limit(limit)
            return q.all(), total
        except SQLAlchemyError as e:
            self._handle_error(e, "search_alerts")

    def active_for_volunteer(self, volunteer_id: int) -> list[AlertRecordORM]:
        return self.list(
            AlertRecordORM.volunteer_id == volunteer_id,
            AlertRecordORM.is_resolved.is_(False),
            order_by=[_SEVERITY_ORDER.desc(), AlertRecordORM.created_at.desc()],
        )

    def counts_by(self, column_name: str, *filters: Any) -> dict[str, int]:
        column = getattr(AlertRecordORM, column_name)
        q = self.s.query(column, func.count(AlertRecordORM.id))
        for f in filters:
            q = q.filter(f)
        return {str(k): int(n) for k, n in q.group_by(column).all()}

    def top_volunteers(self, limit: int = 10) -> list[tuple[int, str, int, int]]:
        """(volunteer_id, full_name, alert_count, unresolved_count), most alerts first."""
        unresolved = func.sum(case((AlertRecordORM.is_resolved.is_(False), 1), else_=0))
        rows = (
            self.s.query(
                VolunteerORM.id,
                VolunteerORM.full_name,
                func.count(AlertRecordORM.id).label("alert_count"),
                unresolved,
            )
            .join(AlertRecordORM, AlertRecordORM.volunteer_id == VolunteerORM.id)
            .group_by(VolunteerORM.id, VolunteerORM.full_name)
            .order_by(func.count(AlertRecordORM.id).desc(), VolunteerORM.id)
            .limit(limit)
            .all()
        )
        return [(vid, name, int(total), int(open_ or 0)) for vid, name, total, open_ in rows]
