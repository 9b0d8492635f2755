# talentgrid/infrastructure/repositories_evaluation.py
from __future__ import annotations

import builtins
from collections.abc import Iterable
from typing import Any, TypeVar

from sqlalchemy.orm import selectinload

from .exceptions import EvaluationNotFoundError
from .logging import log_database_operation as log_op
from .models import EvaluationCompetencyORM, LeaderEvaluationORM, SelfEvaluationORM
from .repositories_base import BaseRepository as GenericBaseRepository

E = TypeVar("E")  # ORM evaluation model type


class _EvaluationRepo(GenericBaseRepository[E]):
    """Shared queries for self and leader evaluations, keyed by (employee, cycle)."""

    not_found = EvaluationNotFoundError

    def find(self, employee_id: int, cycle_id: int) -> E | None:
        return (
            self.s.query(self.model)
            .filter_by(employee_id=employee_id, cycle_id=cycle_id)
            .order_by(self.model.id.desc())
            .limit(1)
            .one_or_none()
        )

    def list_for_employee(
        self, employee_id: int, cycle_id: int | None = None
    ) -> builtins.list[E]:
        q = (
            self.s.query(self.model)
            .options(selectinload(self.model.competencies))
            .filter_by(employee_id=employee_id)
        )
        if cycle_id is not None:
            q = q.filter_by(cycle_id=cycle_id)
        return list(q.order_by(self.model.evaluation_date.desc(), self.model.id.desc()).all())

    def replace_competencies(
        self, evaluation: E, rows: Iterable[dict[str, Any]]
    ) -> builtins.list[EvaluationCompetencyORM]:
        """Replace the competency rows attached to ``evaluation``."""
        evaluation.competencies.clear()
        self.s.flush()
        created = [EvaluationCompetencyORM(**row) for row in rows]
        evaluation.competencies.extend(created)
        self.s.flush()
        return created

    def upsert(self, employee_id: int, cycle_id: int, **fields: Any) -> tuple[E, bool]:
        """
        Update the evaluation for (employee, cycle) or create it.

        Lookup and write are not locked; two concurrent writers for the
        same pair can both insert.
        """
        existing = self.find(employee_id, cycle_id)
        if existing is not None:
            return self.update(existing, **fields), False
        return self.create(employee_id=employee_id, cycle_id=cycle_id, **fields), True


class SelfEvaluationRepo(_EvaluationRepo[SelfEvaluationORM]):
    model = SelfEvaluationORM

    @log_op("self_evaluation.find")
    def find(self, employee_id: int, cycle_id: int) -> SelfEvaluationORM | None:
        return super().find(employee_id, cycle_id)

    @log_op("self_evaluation.list_for_employee")
    def list_for_employee(
        self, employee_id: int, cycle_id: int | None = None
    ) -> builtins.list[SelfEvaluationORM]:
        return super().list_for_employee(employee_id, cycle_id)

    @log_op("self_evaluation.upsert")
    def upsert(self, employee_id: int, cycle_id: int, **fields: Any):
        return super().upsert(employee_id, cycle_id, **fields)


class LeaderEvaluationRepo(_EvaluationRepo[LeaderEvaluationORM]):
    model = LeaderEvaluationORM

    @log_op("leader_evaluation.find")
    def find(self, employee_id: int, cycle_id: int) -> LeaderEvaluationORM | None:
        return super().find(employee_id, cycle_id)

    @log_op("leader_evaluation.list_for_employee")
    def list_for_employee(
        self, employee_id: int, cycle_id: int | None = None
    ) -> builtins.list[LeaderEvaluationORM]:
        return super().list_for_employee(employee_id, cycle_id)

    @log_op("leader_evaluation.upsert")
    def upsert(self, employee_id: int, cycle_id: int, **fields: Any):
        return super().upsert(employee_id, cycle_id, **fields)


class ToolkitRepo(GenericBaseRepository[EvaluationCompetencyORM]):
    """Standalone competency rows entered through the bulk toolkit section."""

    model = EvaluationCompetencyORM

    @log_op("toolkit.upsert")
    def upsert(
        self, employee_id: int, cycle_id: int, criterion_name: str, score: float
    ) -> EvaluationCompetencyORM:
        existing = (
            self.s.query(self.model)
            .filter_by(
                employee_id=employee_id,
                cycle_id=cycle_id,
                criterion_name=criterion_name,
                self_evaluation_id=None,
                leader_evaluation_id=None,
            )
            .one_or_none()
        )
        if existing is not None:
            return self.update(existing, score=score)
        return self.create(
            employee_id=employee_id,
            cycle_id=cycle_id,
            criterion_name=criterion_name,
            category="behavioral",
            score=score,
        )

    @log_op("toolkit.list_for_employee")
    def list_for_employee(
        self, employee_id: int, cycle_id: int
    ) -> builtins.list[EvaluationCompetencyORM]:
        return super().list(
            self.model.employee_id == employee_id,
            self.model.cycle_id == cycle_id,
            order_by=[self.model.criterion_name.asc()],
        )
