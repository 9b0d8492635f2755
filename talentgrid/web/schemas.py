from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from talentgrid.domain.models import Level
from talentgrid.domain.schemas import CompetencyScoreInput, CycleStatus


class OrmModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ---------- Requests ----------


class EmployeeCreateRequest(BaseModel):
    name: str
    email: str
    position: Optional[str] = None
    department: Optional[str] = None


class CycleCreateRequest(BaseModel):
    title: str
    start_date: date
    end_date: date
    description: Optional[str] = None
    status: CycleStatus = "draft"


class SelfEvaluationRequest(BaseModel):
    cycle_id: int
    employee_id: int
    competencies: list[CompetencyScoreInput] = Field(default_factory=list)


class LeaderEvaluationRequest(SelfEvaluationRequest):
    evaluator_id: int
    potential_score: Optional[float] = None
    potential_indicators: Optional[dict[str, Optional[float]]] = None
    strengths: Optional[str] = None
    improvements: Optional[str] = None
    observations: Optional[str] = None


class ConsensusMeetingRequest(BaseModel):
    cycle_id: int
    employee_id: int
    meeting_date: Optional[date] = None
    self_evaluation_id: Optional[int] = None
    leader_evaluation_id: Optional[int] = None
    notes: Optional[str] = None
    participants: list[str] = Field(default_factory=list)


class ConsensusCompleteRequest(BaseModel):
    performance_score: Optional[float] = None
    potential_score: Optional[float] = None
    notes: Optional[str] = None
    competencies: Optional[dict[str, Any]] = None
    potential_indicators: Optional[dict[str, Optional[float]]] = None


class PdiCreateRequest(BaseModel):
    employee_id: int
    goals: list[str]
    actions: list[str] = Field(default_factory=list)
    resources: list[str] = Field(default_factory=list)
    timeline: Optional[str] = None
    cycle_id: Optional[int] = None
    created_by: Optional[int] = None


class PdiUpdateRequest(BaseModel):
    goals: Optional[list[str]] = None
    actions: Optional[list[str]] = None
    resources: Optional[list[str]] = None
    timeline: Optional[str] = None
    status: Optional[str] = None


class BulkRequest(BaseModel):
    """Batch of raw bulk records; each record is checked by the bulk validator."""

    cycle_id: Optional[int] = None
    created_by: Optional[int] = None
    evaluations: list[dict[str, Any]] = Field(default_factory=list)


class ScoringPreviewRequest(BaseModel):
    competencies: Optional[list[CompetencyScoreInput]] = None
    grouped: Optional[dict[str, Any]] = None
    potential_score: Optional[float] = None
    potential_indicators: Optional[dict[str, Any]] = None


# ---------- Responses ----------


class EmployeeResponse(OrmModel):
    id: int
    name: str
    email: str
    position: Optional[str] = None
    department: Optional[str] = None


class CycleResponse(OrmModel):
    id: int
    title: str
    description: Optional[str] = None
    start_date: date
    end_date: date
    status: str
    is_editable: bool
    created_at: datetime


class CompetencyResponse(OrmModel):
    id: int
    criterion_name: str
    criterion_description: Optional[str] = None
    category: str
    score: Optional[float] = None
    written_response: Optional[str] = None


class EvaluationResponse(OrmModel):
    id: int
    cycle_id: int
    employee_id: int
    status: str
    technical_score: float
    behavioral_score: float
    deliveries_score: float
    final_score: float
    evaluation_date: date
    competencies: list[CompetencyResponse] = Field(default_factory=list)


class LeaderEvaluationResponse(EvaluationResponse):
    evaluator_id: Optional[int] = None
    potential_score: Optional[float] = None
    strengths: Optional[str] = None
    improvements: Optional[str] = None
    observations: Optional[str] = None


class ExistingEvaluationResponse(BaseModel):
    exists: bool


class ConsensusMeetingResponse(OrmModel):
    id: int
    cycle_id: int
    employee_id: int
    self_evaluation_id: Optional[int] = None
    leader_evaluation_id: Optional[int] = None
    meeting_date: Optional[date] = None
    consensus_performance_score: float
    consensus_potential_score: float
    meeting_notes: Optional[str] = None
    status: str


class NineBoxEntry(BaseModel):
    employee_id: int
    employee_name: str
    position: Optional[str] = None
    department: Optional[str] = None
    performance_score: float
    potential_score: float
    performance_level: Optional[Level] = None
    potential_level: Optional[Level] = None
    nine_box_position: str
    cell: Optional[int] = None


class NineBoxGridResponse(BaseModel):
    performance_levels: list[str]
    potential_levels: list[str]
    counts: list[list[int]]


class DashboardEntry(BaseModel):
    employee_id: int
    employee_name: str
    position: Optional[str] = None
    self_evaluation_status: str
    self_evaluation_score: Optional[float] = None
    leader_evaluation_status: str
    leader_evaluation_score: Optional[float] = None
    consensus_status: str
    consensus_performance_score: Optional[float] = None
    consensus_potential_score: Optional[float] = None


class PdiResponse(BaseModel):
    id: int
    employee_id: int
    cycle_id: Optional[int] = None
    goals: list[str]
    actions: list[str]
    resources: list[str]
    timeline: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime


class BulkValidationResponse(BaseModel):
    is_valid: bool
    errors: list[str]


class BulkUploadResponse(BaseModel):
    success: int
    skipped: int
    errors: list[str]


class ScoringPreviewResponse(BaseModel):
    technical_score: float
    behavioral_score: float
    deliveries_score: float
    final_score: float
    potential_score: Optional[float] = None
    nine_box_position: str
    cell: Optional[int] = None
