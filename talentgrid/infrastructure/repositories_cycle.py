# talentgrid/infrastructure/repositories_cycle.py
from __future__ import annotations

import builtins
from datetime import date
from typing import Any

from .exceptions import CycleNotFoundError
from .logging import log_database_operation as log_op
from .models import EvaluationCycleORM
from .repositories_base import BaseRepository as GenericBaseRepository

CURRENT_STATUSES = ("active", "open")


class CycleRepo(GenericBaseRepository[EvaluationCycleORM]):
    model = EvaluationCycleORM
    not_found = CycleNotFoundError

    @log_op("cycle.get_required")
    def get_by_id_required(self, id_: Any) -> EvaluationCycleORM:
        return super().get_by_id_required(id_)

    @log_op("cycle.list_all")
    def list_all(self) -> builtins.list[EvaluationCycleORM]:
        # Newest first
        return super().list(order_by=[self.model.created_at.desc(), self.model.id.desc()])

    @log_op("cycle.current")
    def current(self, today: date) -> EvaluationCycleORM | None:
        return (
            self.s.query(self.model)
            .filter(
                self.model.start_date <= today,
                self.model.end_date >= today,
                self.model.status.in_(CURRENT_STATUSES),
            )
            .order_by(self.model.created_at.desc(), self.model.id.desc())
            .limit(1)
            .one_or_none()
        )

    @log_op("cycle.create")
    def create(self, **fields: Any) -> EvaluationCycleORM:
        fields.setdefault("is_editable", fields.get("status", "draft") != "closed")
        return super().create(**fields)

    @log_op("cycle.set_status")
    def set_status(self, cycle: EvaluationCycleORM, status: str) -> EvaluationCycleORM:
        return super().update(cycle, status=status, is_editable=status != "closed")

    @log_op("cycle.close_open_except")
    def close_open_except(self, cycle_id: int) -> int:
        """Close every other open cycle; returns how many were closed."""
        others = super().list(self.model.status == "open", self.model.id != cycle_id)
        for other in others:
            other.status = "closed"
            other.is_editable = False
        self.s.flush()
        return len(others)
