# volunteer_eval/infrastructure/repositories_note.py
from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError

from .logging import log_database_operation as log_op
from .models import CumulativeNoteORM
from .repositories_base import BaseRepository as GenericBaseRepository


class NoteRepo(GenericBaseRepository[CumulativeNoteORM]):
    """Append-only cumulative notes about a volunteer."""

    model = CumulativeNoteORM

    @log_op("add_note")
    def add(
        self,
        volunteer_id: int,
        content: str,
        note_type: str = "general",
        is_positive: bool = True,
        created_by: int | None = None,
    ) -> CumulativeNoteORM:
        try:
            return self.create(
                volunteer_id=volunteer_id,
                note_type=note_type,
                content=content,
                is_positive=is_positive,
                created_by=created_by,
            )
        except SQLAlchemyError as e:
            self._handle_error(e, "add_note")

    def recent(self, volunteer_id: int, limit: int = 10) -> list[CumulativeNoteORM]:
        return self.list(
            CumulativeNoteORM.volunteer_id == volunteer_id,
            order_by=[CumulativeNoteORM.created_at.desc(), CumulativeNoteORM.id.desc()],
            limit=limit,
        )
