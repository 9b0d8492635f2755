# talentgrid/infrastructure/repositories_pdi.py
from __future__ import annotations

import json
from typing import Any

from .exceptions import DevelopmentPlanNotFoundError
from .logging import log_database_operation as log_op
from .models import DevelopmentPlanORM
from .repositories_base import BaseRepository as GenericBaseRepository

LIST_FIELDS = ("goals", "actions", "resources")


def encode_list(items: list[str] | None) -> str:
    return json.dumps(list(items or []), ensure_ascii=False)


def decode_list(raw: str | None) -> list[str]:
    if not raw:
        return []
    value = json.loads(raw)
    return [str(item) for item in value] if isinstance(value, list) else [str(value)]


def _encode_fields(fields: dict[str, Any]) -> dict[str, Any]:
    return {k: encode_list(v) if k in LIST_FIELDS else v for k, v in fields.items()}


class DevelopmentPlanRepo(GenericBaseRepository[DevelopmentPlanORM]):
    model = DevelopmentPlanORM
    not_found = DevelopmentPlanNotFoundError

    @log_op("pdi.get_required")
    def get_by_id_required(self, id_: Any) -> DevelopmentPlanORM:
        return super().get_by_id_required(id_)

    @log_op("pdi.active_for_employee")
    def active_for_employee(
        self, employee_id: int, cycle_id: int | None = None
    ) -> DevelopmentPlanORM | None:
        q = self.s.query(self.model).filter_by(employee_id=employee_id, status="active")
        if cycle_id is not None:
            q = q.filter_by(cycle_id=cycle_id)
        return q.order_by(self.model.created_at.desc(), self.model.id.desc()).first()

    @log_op("pdi.complete_active")
    def complete_active(self, employee_id: int) -> int:
        plans = super().list(self.model.employee_id == employee_id, self.model.status == "active")
        for plan in plans:
            plan.status = "completed"
        self.s.flush()
        return len(plans)

    @log_op("pdi.create")
    def create(self, **fields: Any) -> DevelopmentPlanORM:
        return super().create(**_encode_fields(fields))

    @log_op("pdi.update")
    def update(self, obj: DevelopmentPlanORM, **fields: Any) -> DevelopmentPlanORM:
        return super().update(obj, **_encode_fields(fields))
