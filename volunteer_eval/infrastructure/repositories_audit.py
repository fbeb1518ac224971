# volunteer_eval/infrastructure/repositories_audit.py
from __future__ import annotations

from typing import Any

from pydantic_core import to_jsonable_python
from sqlalchemy.exc import SQLAlchemyError

from .logging import log_database_operation as log_op
from .models import AuditEntryORM
from .repositories_base import BaseRepository as GenericBaseRepository


class AuditTrailRepo(GenericBaseRepository[AuditEntryORM]):
    """
    Audit trail writer.

    Entries are written in the caller's transaction, so a failed audit write
    fails the mutation it describes.
    """

    model = AuditEntryORM

    @log_op("record_audit_entry")
    def record(
        self,
        user_id: int | None,
        action_type: str,
        table_name: str,
        record_id: Any = None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        description: str | None = None,
    ) -> AuditEntryORM:
        try:
            return self.create(
                user_id=user_id,
                action_type=action_type,
                table_name=table_name,
                record_id=str(record_id) if record_id is not None else None,
                old_values=to_jsonable_python(old_values) if old_values is not None else None,
                new_values=to_jsonable_python(new_values) if new_values is not None else None,
                description=description,
            )
        except SQLAlchemyError as e:
            self._handle_error(e, "record_audit_entry")

    def for_record(self, table_name: str, record_id: Any) -> list[AuditEntryORM]:
        return self.list(
            AuditEntryORM.table_name == table_name,
            AuditEntryORM.record_id == str(record_id),
            order_by=[AuditEntryORM.created_at, AuditEntryORM.id],
        )
