from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from talentgrid.application import api as app_api
from talentgrid.infrastructure.exceptions import (
    BulkValidationError,
    TalentGridError,
)
from talentgrid.infrastructure.logging import get_logger
from talentgrid.web.dependencies import get_db_session
from talentgrid.web.schemas import (
    BulkRequest,
    BulkUploadResponse,
    BulkValidationResponse,
    ConsensusCompleteRequest,
    ConsensusMeetingRequest,
    ConsensusMeetingResponse,
    CycleCreateRequest,
    CycleResponse,
    DashboardEntry,
    EmployeeCreateRequest,
    EmployeeResponse,
    EvaluationResponse,
    ExistingEvaluationResponse,
    LeaderEvaluationRequest,
    LeaderEvaluationResponse,
    NineBoxEntry,
    NineBoxGridResponse,
    PdiCreateRequest,
    PdiResponse,
    PdiUpdateRequest,
    SelfEvaluationRequest,
)

router = APIRouter(prefix="/api")
evaluations = APIRouter(prefix="/api/evaluations", tags=["evaluations"])
logger = get_logger("web.api")


@contextmanager
def service_call(db: Session, commit: bool = False) -> Iterator[None]:
    """Run application calls, committing on success and mapping errors to HTTP."""
    try:
        yield
        if commit:
            db.commit()
    except TalentGridError as exc:
        db.rollback()
        logger.info("Request failed: %s", exc)
        raise HTTPException(status_code=exc.http_status, detail=exc.response_detail()) from exc
    except Exception:
        db.rollback()
        raise


@router.get("/health")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


# ---------- Employees ----------


@router.get("/employees", response_model=list[EmployeeResponse])
def list_employees(db: Session = Depends(get_db_session)) -> list[EmployeeResponse]:
    with service_call(db):
        employees = app_api.list_employees(db)
    return [EmployeeResponse.model_validate(e) for e in employees]


@router.post("/employees", response_model=EmployeeResponse, status_code=status.HTTP_201_CREATED)
def create_employee(
    payload: EmployeeCreateRequest, db: Session = Depends(get_db_session)
) -> EmployeeResponse:
    with service_call(db, commit=True):
        employee = app_api.create_employee(db, **payload.model_dump())
    return EmployeeResponse.model_validate(employee)


# ---------- Cycles ----------


@evaluations.get("/cycles", response_model=list[CycleResponse])
def list_cycles(db: Session = Depends(get_db_session)) -> list[CycleResponse]:
    with service_call(db):
        cycles = app_api.list_cycles(db)
    return [CycleResponse.model_validate(c) for c in cycles]


@evaluations.post("/cycles", response_model=CycleResponse, status_code=status.HTTP_201_CREATED)
def create_cycle(payload: CycleCreateRequest, db: Session = Depends(get_db_session)) -> CycleResponse:
    with service_call(db, commit=True):
        cycle = app_api.create_cycle(db, **payload.model_dump())
    return CycleResponse.model_validate(cycle)


@evaluations.get("/cycles/current", response_model=CycleResponse | None)
def get_current_cycle(db: Session = Depends(get_db_session)) -> CycleResponse | None:
    with service_call(db):
        cycle = app_api.get_current_cycle(db)
    return CycleResponse.model_validate(cycle) if cycle else None


@evaluations.put("/cycles/{cycle_id}/open", response_model=CycleResponse)
def open_cycle(cycle_id: int, db: Session = Depends(get_db_session)) -> CycleResponse:
    with service_call(db, commit=True):
        cycle = app_api.update_cycle_status(db, cycle_id, "open")
    return CycleResponse.model_validate(cycle)


@evaluations.put("/cycles/{cycle_id}/close", response_model=CycleResponse)
def close_cycle(cycle_id: int, db: Session = Depends(get_db_session)) -> CycleResponse:
    with service_call(db, commit=True):
        cycle = app_api.update_cycle_status(db, cycle_id, "closed")
    return CycleResponse.model_validate(cycle)


@evaluations.get("/cycles/{cycle_id}/dashboard", response_model=list[DashboardEntry])
def get_cycle_dashboard(cycle_id: int, db: Session = Depends(get_db_session)) -> list[DashboardEntry]:
    with service_call(db):
        rows = app_api.get_cycle_dashboard(db, cycle_id)
    return [DashboardEntry(**row) for row in rows]


@evaluations.get("/cycles/{cycle_id}/nine-box", response_model=list[NineBoxEntry])
def get_nine_box(cycle_id: int, db: Session = Depends(get_db_session)) -> list[NineBoxEntry]:
    with service_call(db):
        rows = app_api.get_nine_box_data(db, cycle_id)
    return [NineBoxEntry(**row) for row in rows]


@evaluations.get("/cycles/{cycle_id}/nine-box/grid", response_model=NineBoxGridResponse)
def get_nine_box_grid(cycle_id: int, db: Session = Depends(get_db_session)) -> NineBoxGridResponse:
    with service_call(db):
        grid = app_api.nine_box_grid(db, cycle_id)
    return NineBoxGridResponse(
        performance_levels=[str(i) for i in grid.index],
        potential_levels=[str(c) for c in grid.columns],
        counts=grid.to_numpy().tolist(),
    )


# ---------- Evaluations ----------


@evaluations.post("/self", response_model=EvaluationResponse, status_code=status.HTTP_201_CREATED)
def create_self_evaluation(
    payload: SelfEvaluationRequest, db: Session = Depends(get_db_session)
) -> EvaluationResponse:
    with service_call(db, commit=True):
        evaluation = app_api.create_self_evaluation(
            db,
            cycle_id=payload.cycle_id,
            employee_id=payload.employee_id,
            competencies=payload.competencies,
        )
    return EvaluationResponse.model_validate(evaluation)


@evaluations.post(
    "/leader", response_model=LeaderEvaluationResponse, status_code=status.HTTP_201_CREATED
)
def create_leader_evaluation(
    payload: LeaderEvaluationRequest, db: Session = Depends(get_db_session)
) -> LeaderEvaluationResponse:
    with service_call(db, commit=True):
        evaluation = app_api.create_leader_evaluation(
            db,
            cycle_id=payload.cycle_id,
            employee_id=payload.employee_id,
            evaluator_id=payload.evaluator_id,
            competencies=payload.competencies,
            potential_score=payload.potential_score,
            potential_indicators=payload.potential_indicators,
            strengths=payload.strengths,
            improvements=payload.improvements,
            observations=payload.observations,
        )
    return LeaderEvaluationResponse.model_validate(evaluation)


@evaluations.get("/self-evaluations/{employee_id}", response_model=list[EvaluationResponse])
def list_self_evaluations(
    employee_id: int, cycle_id: int | None = None, db: Session = Depends(get_db_session)
) -> list[EvaluationResponse]:
    with service_call(db):
        rows = app_api.list_self_evaluations(db, employee_id, cycle_id)
    return [EvaluationResponse.model_validate(r) for r in rows]


@evaluations.get(
    "/leader-evaluations/{employee_id}", response_model=list[LeaderEvaluationResponse]
)
def list_leader_evaluations(
    employee_id: int, cycle_id: int | None = None, db: Session = Depends(get_db_session)
) -> list[LeaderEvaluationResponse]:
    with service_call(db):
        rows = app_api.list_leader_evaluations(db, employee_id, cycle_id)
    return [LeaderEvaluationResponse.model_validate(r) for r in rows]


@evaluations.get("/check", response_model=ExistingEvaluationResponse)
def check_existing_evaluation(
    cycle_id: int,
    employee_id: int,
    kind: Literal["self", "leader"],
    db: Session = Depends(get_db_session),
) -> ExistingEvaluationResponse:
    with service_call(db):
        exists = app_api.check_existing_evaluation(db, cycle_id, employee_id, kind)
    return ExistingEvaluationResponse(exists=exists)


# ---------- Consensus ----------


@evaluations.post(
    "/consensus", response_model=ConsensusMeetingResponse, status_code=status.HTTP_201_CREATED
)
def create_consensus_meeting(
    payload: ConsensusMeetingRequest, db: Session = Depends(get_db_session)
) -> ConsensusMeetingResponse:
    with service_call(db, commit=True):
        meeting = app_api.create_consensus_meeting(db, **payload.model_dump())
    return ConsensusMeetingResponse.model_validate(meeting)


@evaluations.put("/consensus/{meeting_id}/complete", response_model=ConsensusMeetingResponse)
def complete_consensus_meeting(
    meeting_id: int, payload: ConsensusCompleteRequest, db: Session = Depends(get_db_session)
) -> ConsensusMeetingResponse:
    with service_call(db, commit=True):
        meeting = app_api.complete_consensus_meeting(db, meeting_id, **payload.model_dump())
    return ConsensusMeetingResponse.model_validate(meeting)


# ---------- PDI ----------


@evaluations.post("/pdi", response_model=PdiResponse, status_code=status.HTTP_201_CREATED)
def save_pdi(payload: PdiCreateRequest, db: Session = Depends(get_db_session)) -> PdiResponse:
    with service_call(db, commit=True):
        plan = app_api.save_pdi(db, **payload.model_dump())
    return PdiResponse(**app_api.serialize_pdi(plan))


@evaluations.get("/pdi/{employee_id}", response_model=PdiResponse | None)
def get_pdi(employee_id: int, db: Session = Depends(get_db_session)) -> PdiResponse | None:
    with service_call(db):
        plan = app_api.get_pdi(db, employee_id)
    return PdiResponse(**app_api.serialize_pdi(plan)) if plan else None


@evaluations.put("/pdi/{pdi_id}", response_model=PdiResponse)
def update_pdi(
    pdi_id: int, payload: PdiUpdateRequest, db: Session = Depends(get_db_session)
) -> PdiResponse:
    with service_call(db, commit=True):
        plan = app_api.update_pdi(db, pdi_id, **payload.model_dump(exclude_unset=True))
    return PdiResponse(**app_api.serialize_pdi(plan))


# ---------- Bulk ----------


@evaluations.post("/bulk-validate", response_model=BulkValidationResponse)
def bulk_validate(payload: BulkRequest) -> BulkValidationResponse:
    result = app_api.validate_bulk_evaluations(payload.evaluations)
    return BulkValidationResponse(is_valid=result.is_valid, errors=result.errors)


@evaluations.post("/bulk-upload", response_model=BulkUploadResponse)
def bulk_upload(payload: BulkRequest, db: Session = Depends(get_db_session)):
    if payload.cycle_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="cycle_id is required")
    with service_call(db, commit=True):
        try:
            result = app_api.bulk_create_evaluations(
                db, payload.cycle_id, payload.evaluations, created_by=payload.created_by
            )
        except BulkValidationError as exc:
            # Nothing was written; report every offending score
            return JSONResponse(status_code=exc.http_status, content=exc.response_detail())
    return BulkUploadResponse(success=result.success, skipped=result.skipped, errors=result.errors)
