"""
Repository classes for the evaluation service.

Re-exports the per-aggregate repositories so callers can write:
    from talentgrid.infrastructure.repositories import CycleRepo, ...
"""

from __future__ import annotations

from .repositories_consensus import ConsensusEvaluationRepo, ConsensusMeetingRepo
from .repositories_cycle import CycleRepo
from .repositories_employee import EmployeeRepo
from .repositories_evaluation import LeaderEvaluationRepo, SelfEvaluationRepo, ToolkitRepo
from .repositories_pdi import DevelopmentPlanRepo, decode_list, encode_list

__all__ = [
    "EmployeeRepo",
    "CycleRepo",
    "SelfEvaluationRepo",
    "LeaderEvaluationRepo",
    "ToolkitRepo",
    "ConsensusMeetingRepo",
    "ConsensusEvaluationRepo",
    "DevelopmentPlanRepo",
    "encode_list",
    "decode_list",
]
