# talentgrid/infrastructure/repositories_consensus.py
from __future__ import annotations

import builtins
from typing import Any

from sqlalchemy.orm import joinedload

from .exceptions import ConsensusMeetingNotFoundError
from .logging import log_database_operation as log_op
from .models import ConsensusEvaluationORM, ConsensusMeetingORM
from .repositories_base import BaseRepository as GenericBaseRepository


class ConsensusMeetingRepo(GenericBaseRepository[ConsensusMeetingORM]):
    model = ConsensusMeetingORM
    not_found = ConsensusMeetingNotFoundError

    @log_op("consensus_meeting.get_required")
    def get_by_id_required(self, id_: Any) -> ConsensusMeetingORM:
        return super().get_by_id_required(id_)

    @log_op("consensus_meeting.create")
    def create(self, **fields: Any) -> ConsensusMeetingORM:
        return super().create(**fields)

    @log_op("consensus_meeting.update")
    def update(self, obj: ConsensusMeetingORM, **fields: Any) -> ConsensusMeetingORM:
        return super().update(obj, **fields)

    @log_op("consensus_meeting.list_for_cycle")
    def list_for_cycle(
        self, cycle_id: int, status: str | None = None
    ) -> builtins.list[ConsensusMeetingORM]:
        q = (
            self.s.query(self.model)
            .options(joinedload(self.model.employee))
            .filter(self.model.cycle_id == cycle_id)
        )
        if status is not None:
            q = q.filter(self.model.status == status)
        return list(q.order_by(self.model.id.asc()).all())


class ConsensusEvaluationRepo(GenericBaseRepository[ConsensusEvaluationORM]):
    model = ConsensusEvaluationORM

    @log_op("consensus_evaluation.for_meeting")
    def for_meeting(self, meeting_id: int) -> ConsensusEvaluationORM | None:
        return self.s.query(self.model).filter_by(meeting_id=meeting_id).one_or_none()

    @log_op("consensus_evaluation.upsert")
    def upsert(self, meeting_id: int, **fields: Any) -> ConsensusEvaluationORM:
        existing = self.for_meeting(meeting_id)
        if existing is not None:
            return self.update(existing, **fields)
        return self.create(meeting_id=meeting_id, **fields)
