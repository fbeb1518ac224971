# volunteer_eval/infrastructure/repositories_criterion.py
from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import delete, func, or_
from sqlalchemy.exc import IntegrityError as SQLIntegrityError, SQLAlchemyError

from ..domain.models import CriterionDefinition
from .exceptions import CriterionNotFoundError, DuplicateRecordError
from .logging import log_database_operation as log_op
from .models import CriterionORM, EvaluationDetailORM
from .repositories_base import BaseRepository as GenericBaseRepository


class CriterionRepo(GenericBaseRepository[CriterionORM]):
    """Repository for the configurable evaluation criteria."""

    model = CriterionORM
    not_found = CriterionNotFoundError

    @log_op("get_criterion_by_name")
    def get_by_name(self, name: str) -> CriterionORM | None:
        try:
            return self.s.query(CriterionORM).filter_by(name=name.strip()).one_or_none()
        except SQLAlchemyError as e:
            self._handle_error(e, "get_criterion_by_name")

    @log_op("create_criterion")
    def create_criterion(self, **fields) -> CriterionORM:
        try:
            return self.create(**fields)
        except SQLIntegrityError as e:
            raise DuplicateRecordError("name", fields.get("name")) from e
        except SQLAlchemyError as e:
            self._handle_error(e, "create_criterion")

    @log_op("update_criterion")
    def update_criterion(self, criterion: CriterionORM, **fields) -> CriterionORM:
        try:
            return self.update(criterion, **fields)
        except SQLIntegrityError as e:
            raise DuplicateRecordError("name", fields.get("name")) from e
        except SQLAlchemyError as e:
            self._handle_error(e, "update_criterion")

    @log_op("list_criteria")
    def list_filtered(
        self,
        category: str | None = None,
        applies_to_role: str | None = None,
        include_inactive: bool = False,
    ) -> list[CriterionORM]:
        q = self.s.query(CriterionORM)
        if not include_inactive:
            q = q.filter(CriterionORM.is_active.is_(True))
        if category:
            q = q.filter(CriterionORM.category == category)
        if applies_to_role:
            q = q.filter(CriterionORM.applies_to_role.in_([applies_to_role, "all"]))
        try:
            return q.order_by(CriterionORM.category, CriterionORM.sort_order, CriterionORM.name).all()
        except SQLAlchemyError as e:
            self._handle_error(e, "list_criteria")

    @log_op("load_definitions")
    def definitions(self, criteria_ids: Iterable[int] | None = None) -> list[CriterionDefinition]:
        """Domain views of criteria, restricted to ``criteria_ids`` when given."""
        q = self.s.query(CriterionORM)
        if criteria_ids is not None:
            ids = list(criteria_ids)
            if not ids:
                return []
            q = q.filter(CriterionORM.id.in_(ids))
        return [CriterionDefinition.from_orm(row) for row in q.all()]

    def interaction_ids(self, keywords: Iterable[str]) -> list[int]:
        """Criteria whose name or English name contains one of ``keywords``."""
        conditions = []
        for keyword in keywords:
            pattern = f"%{keyword.lower()}%"
            conditions.append(func.lower(CriterionORM.name).like(pattern))
            conditions.append(func.lower(func.coalesce(CriterionORM.name_en, "")).like(pattern))
        if not conditions:
            return []
        return [cid for (cid,) in self.s.query(CriterionORM.id).filter(or_(*conditions)).all()]

    def usage_count(self, criterion_id: int) -> int:
        return int(
            self.s.query(func.count(EvaluationDetailORM.id))
            .filter(EvaluationDetailORM.criteria_id == criterion_id)
            .scalar()
            or 0
        )

    @log_op("criterion_usage_stats")
    def usage_stats(self, criterion: CriterionORM) -> dict[str, float | int | None]:
        """Count, mean, extremes and high/low bands of recorded scores."""
        high_cut = criterion.max_score * 0.8
        low_cut = criterion.max_score * 0.6
        score = EvaluationDetailORM.score_value
        total, avg, lowest, highest = (
            self.s.query(func.count(EvaluationDetailORM.id), func.avg(score), func.min(score), func.max(score))
            .filter(EvaluationDetailORM.criteria_id == criterion.id)
            .one()
        )
        high = (
            self.s.query(func.count(EvaluationDetailORM.id))
            .filter(EvaluationDetailORM.criteria_id == criterion.id, score >= high_cut)
            .scalar()
        )
        low = (
            self.s.query(func.count(EvaluationDetailORM.id))
            .filter(EvaluationDetailORM.criteria_id == criterion.id, score < low_cut)
            .scalar()
        )
        return {
            "total_usage": int(total or 0),
            "avg_score": round(float(avg), 2) if avg is not None else None,
            "min_score": lowest,
            "max_score": highest,
            "high_scores": int(high or 0),
            "low_scores": int(low or 0),
        }

    @log_op("delete_criterion_details")
    def delete_details(self, criterion_id: int) -> int:
        result = self.s.execute(
            delete(EvaluationDetailORM).where(EvaluationDetailORM.criteria_id == criterion_id)
        )
        return int(result.rowcount or 0)

    @log_op("reorder_criteria")
    def reorder(self, order: list[tuple[int, int]]) -> list[CriterionORM]:
        """Apply ``(criterion_id, sort_order)`` pairs; every id must exist."""
        updated = []
        for criterion_id, sort_order in order:
            criterion = self.get_by_id_required(criterion_id)
            criterion.sort_order = sort_order
            updated.append(criterion)
        self.s.flush()
        return updated
