# volunteer_eval/infrastructure/repositories_evaluation.py
from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError as SQLIntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload, selectinload

from ..domain.models import ResolvedDetail
from .exceptions import DuplicateEvaluationError, EvaluationNotFoundError
from .logging import log_database_operation as log_op
from .models import CriterionORM, EvaluationDetailORM, EvaluationORM, VolunteerORM
from .repositories_base import BaseRepository as GenericBaseRepository


class EvaluationRepo(GenericBaseRepository[EvaluationORM]):
    """
    Repository for monthly evaluations and their per-criterion details.

    Details are always written through ``replace_details`` so an evaluation
    never carries two rows for the same criterion.
    """

    model = EvaluationORM
    not_found = EvaluationNotFoundError

    @log_op("get_evaluation_for_period")
    def get_for_period(self, volunteer_id: int, month: int, year: int) -> EvaluationORM | None:
        try:
            return (
                self.s.query(EvaluationORM)
                .filter_by(volunteer_id=volunteer_id, evaluation_month=month, evaluation_year=year)
                .one_or_none()
            )
        except SQLAlchemyError as e:
            self._handle_error(e, "get_evaluation_for_period")

    @log_op("get_evaluation_with_details")
    def get_with_details(self, evaluation_id: int) -> EvaluationORM:
        evaluation = (
            self.s.query(EvaluationORM)
            .options(
                joinedload(EvaluationORM.volunteer),
                selectinload(EvaluationORM.details).joinedload(EvaluationDetailORM.criterion),
            )
            .filter(EvaluationORM.id == evaluation_id)
            .one_or_none()
        )
        if evaluation is None:
            raise EvaluationNotFoundError(evaluation_id)
        return evaluation

    @log_op("create_evaluation")
    def create_evaluation(self, **fields: Any) -> EvaluationORM:
        try:
            return self.create(**fields)
        except SQLIntegrityError as e:
            raise DuplicateEvaluationError(
                fields["volunteer_id"], fields["evaluation_month"], fields["evaluation_year"]
            ) from e
        except SQLAlchemyError as e:
            self._handle_error(e, "create_evaluation")

    @log_op("replace_evaluation_details")
    def replace_details(
        self, evaluation: EvaluationORM, details: Iterable[ResolvedDetail]
    ) -> list[EvaluationDetailORM]:
        """Delete every stored detail of ``evaluation`` and insert ``details``."""
        try:
            self.s.execute(
                delete(EvaluationDetailORM).where(EvaluationDetailORM.evaluation_id == evaluation.id)
            )
            self.s.expire(evaluation, ["details"])
            rows = [EvaluationDetailORM(evaluation_id=evaluation.id, **d.as_row()) for d in details]
            self.s.add_all(rows)
            self.s.flush()
            return rows
        except SQLAlchemyError as e:
            self._handle_error(e, "replace_evaluation_details")

    @log_op("search_evaluations")
    def search(
        self,
        volunteer_id: int | None = None,
        evaluator_id: int | None = None,
        year: int | None = None,
        month: int | None = None,
        status: str | None = None,
        min_percentage: float | None = None,
        max_percentage: float | None = None,
        percentage_below: float | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[EvaluationORM], int]:
        q = self.s.query(EvaluationORM).options(joinedload(EvaluationORM.volunteer))
        if volunteer_id is not None:
            q = q.filter(EvaluationORM.volunteer_id == volunteer_id)
        if evaluator_id is not None:
            q = q.filter(EvaluationORM.evaluator_id == evaluator_id)
        if year is not None:
            q = q.filter(EvaluationORM.evaluation_year == year)
        if month is not None:
            q = q.filter(EvaluationORM.evaluation_month == month)
        if status is not None:
            q = q.filter(EvaluationORM.status == status)
        if min_percentage is not None:
            q = q.filter(EvaluationORM.percentage >= min_percentage)
        if max_percentage is not None:
            q = q.filter(EvaluationORM.percentage <= max_percentage)
        if percentage_below is not None:
            q = q.filter(EvaluationORM.percentage < percentage_below)
        q = q.order_by(
            EvaluationORM.evaluation_year.desc(),
            EvaluationORM.evaluation_month.desc(),
            EvaluationORM.created_at.desc(),
            EvaluationORM.id.desc(),
        )
        try:
            total = q.count()
            if offset:
                q = q.offset(offset)
            if limit:
                q = q.limit(limit)
            return q.all(), total
        except SQLAlchemyError as e:
            self._handle_error(e, "search_evaluations")

    @log_op("evaluations_for_volunteer")
    def for_volunteer(
        self,
        volunteer_id: int,
        year: int | None = None,
        months: list[int] | None = None,
        status: str | None = None,
        limit: int | None = None,
    ) -> list[EvaluationORM]:
        """Evaluations of one volunteer, newest period first."""
        q = self.s.query(EvaluationORM).filter(EvaluationORM.volunteer_id == volunteer_id)
        if year is not None:
            q = q.filter(EvaluationORM.evaluation_year == year)
        if months:
            q = q.filter(EvaluationORM.evaluation_month.in_(months))
        if status is not None:
            q = q.filter(EvaluationORM.status == status)
        q = q.order_by(EvaluationORM.evaluation_year.desc(), EvaluationORM.evaluation_month.desc())
        if limit:
            q = q.limit(limit)
        return q.all()

    @log_op("approved_history")
    def approved_history(
        self, volunteer_ids: Iterable[int] | None = None, year: int | None = None
    ) -> list[EvaluationORM]:
        """Approved evaluations of active volunteers with details loaded, oldest first."""
        q = (
            self.s.query(EvaluationORM)
            .join(VolunteerORM, VolunteerORM.id == EvaluationORM.volunteer_id)
            .options(
                joinedload(EvaluationORM.volunteer),
                selectinload(EvaluationORM.details),
            )
            .filter(EvaluationORM.status == "approved", VolunteerORM.is_active.is_(True))
        )
        if volunteer_ids is not None:
            q = q.filter(EvaluationORM.volunteer_id.in_(list(volunteer_ids)))
        if year is not None:
            q = q.filter(EvaluationORM.evaluation_year == year)
        return q.order_by(
            EvaluationORM.volunteer_id,
            EvaluationORM.evaluation_year,
            EvaluationORM.evaluation_month,
        ).all()

    def details_for_criterion(
        self, volunteer_id: int, criterion_id: int, limit: int = 6
    ) -> list[tuple[EvaluationORM, EvaluationDetailORM, CriterionORM]]:
        """Latest approved evaluations of a volunteer that scored ``criterion_id``."""
        return (
            self.s.query(EvaluationORM, EvaluationDetailORM, CriterionORM)
            .join(EvaluationDetailORM, EvaluationDetailORM.evaluation_id == EvaluationORM.id)
            .join(CriterionORM, CriterionORM.id == EvaluationDetailORM.criteria_id)
            .filter(
                EvaluationORM.volunteer_id == volunteer_id,
                EvaluationORM.status == "approved",
                EvaluationDetailORM.criteria_id == criterion_id,
            )
            .order_by(EvaluationORM.evaluation_year.desc(), EvaluationORM.evaluation_month.desc())
            .limit(limit)
            .all()
        )
