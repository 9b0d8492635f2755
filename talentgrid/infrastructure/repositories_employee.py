# talentgrid/infrastructure/repositories_employee.py
from __future__ import annotations

import builtins
from collections.abc import Iterable
from typing import Any

from .exceptions import EmployeeNotFoundError
from .logging import log_database_operation as log_op
from .models import EmployeeORM
from .repositories_base import BaseRepository as GenericBaseRepository


class EmployeeRepo(GenericBaseRepository[EmployeeORM]):
    model = EmployeeORM
    not_found = EmployeeNotFoundError

    @log_op("employee.get_required")
    def get_by_id_required(self, id_: Any) -> EmployeeORM:
        return super().get_by_id_required(id_)

    @log_op("employee.get_by_email")
    def get_by_email(self, email: str) -> EmployeeORM | None:
        return self.s.query(self.model).filter_by(email=email.lower()).one_or_none()

    @log_op("employee.list_all")
    def list_all(self, order_by: Iterable[Any] | None = None) -> builtins.list[EmployeeORM]:
        if order_by is None:
            order_by = [self.model.name.asc(), self.model.id.asc()]
        return super().list(order_by=order_by)

    @log_op("employee.create")
    def create(self, **fields: Any) -> EmployeeORM:
        return super().create(**fields)
