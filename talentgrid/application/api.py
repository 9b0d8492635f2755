"""
Application API layer with error handling, validation and logging.

This module provides the use cases of the evaluation service: cycles,
self and leader evaluations, consensus meetings, the nine-box grid,
development plans (PDI) and bulk uploads. Every function takes a
SQLAlchemy session first and leaves committing to the caller.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from datetime import date
from numbers import Real
from typing import Any

import pandas as pd
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from ..domain.models import (
    BulkSaveResult,
    BulkValidationResult,
    Category,
    CategoryBreakdown,
    CompetencyScore,
    Level,
    ScoreRange,
)
from ..domain.schemas import (
    BatchRecordInput,
    CompetencyScoreInput,
    ConsensusCompletionInput,
    ConsensusMeetingInput,
    CycleCreationInput,
    EmployeeCreationInput,
    LeaderEvaluationInput,
    PdiInput,
    PdiUpdateInput,
    SelfEvaluationInput,
    validate_input,
)
from ..domain.services import ScoringService, default_scoring_service
from ..domain.validation import BulkValidator, flat_scores, numeric_section
from ..infrastructure.config import get_settings
from ..infrastructure.exceptions import (
    BulkValidationError,
    BusinessLogicError,
    CycleClosedError,
    IntegrityError,
    MultipleValidationError,
    TalentGridError,
    ValidationError,
    log_error_details,
)
from ..infrastructure.logging import LogContext, get_logger, log_operation
from ..infrastructure.models import (
    ConsensusMeetingORM,
    DevelopmentPlanORM,
    EmployeeORM,
    EvaluationCycleORM,
    LeaderEvaluationORM,
    SelfEvaluationORM,
)
from ..infrastructure.repositories import (
    ConsensusEvaluationRepo,
    ConsensusMeetingRepo,
    CycleRepo,
    DevelopmentPlanRepo,
    EmployeeRepo,
    LeaderEvaluationRepo,
    SelfEvaluationRepo,
    ToolkitRepo,
    decode_list,
    encode_list,
)
from ..infrastructure.uow import savepoint

logger = get_logger(__name__)

BULK_ERROR_TEMPLATE = "Erro ao processar usuário {user_id}: {message}"


# ---------- Helpers ----------


def _validated(schema: type[BaseModel], data: dict[str, Any], field: str) -> dict[str, Any]:
    result = validate_input(schema, data)
    if not result.success:
        error_msg = "; ".join(f"{e.field}: {e.message}" for e in result.errors)
        logger.warning("Validation failed for %s: %s", field, error_msg)
        raise ValidationError(field, error_msg)
    if result.data is None:
        raise RuntimeError("Validation succeeded but returned no data")
    return result.data


def _scoring() -> ScoringService:
    return default_scoring_service()


def _interactive_range() -> ScoreRange:
    return get_settings().scoring.interactive_range()


def _check_range(
    values: Iterable[tuple[str, Any]], score_range: ScoreRange
) -> None:
    """Raise MultipleValidationError listing every present value outside ``score_range``."""
    errors = [
        ValidationError(
            field, f"must be between {score_range.minimum:g} and {score_range.maximum:g}", value
        )
        for field, value in values
        if value is not None and not score_range.contains(float(value))
    ]
    if errors:
        raise MultipleValidationError(errors)


def _grouped_values(grouped: Mapping[str, Any], prefix: str) -> Iterator[tuple[str, Any]]:
    """Every scored leaf of grouped competencies, with a dotted field name."""
    for key, value in grouped.items():
        field = f"{prefix}.{key}"
        if isinstance(value, Mapping):
            yield from _grouped_values(value, field)
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                if isinstance(item, Real) and not isinstance(item, bool):
                    yield f"{field}[{index}]", item
        elif isinstance(value, Real) and not isinstance(value, bool):
            yield field, value


def _editable_cycle(session: Session, cycle_id: int) -> EvaluationCycleORM:
    cycle = CycleRepo(session).get_by_id_required(cycle_id)
    if not cycle.is_editable:
        raise CycleClosedError(cycle_id)
    return cycle


def _competency_scores(items: Iterable[dict[str, Any]]) -> list[CompetencyScore]:
    return [
        CompetencyScore(
            name=item["name"],
            category=item["category"],
            score=item.get("score"),
            written_response=item.get("written_response"),
        )
        for item in items
    ]


def _competency_rows(items: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "criterion_name": item["name"],
            "criterion_description": item.get("description"),
            "category": Category.parse(item["category"]).value,
            "score": item.get("score"),
            "written_response": item.get("written_response"),
        }
        for item in items
    ]


# ---------- Employees ----------


@log_operation("create_employee")
def create_employee(
    session: Session,
    name: str,
    email: str,
    position: str | None = None,
    department: str | None = None,
) -> EmployeeORM:
    """
    Register an employee.

    Raises:
        ValidationError: If the name or email is invalid
        IntegrityError: If the email is already registered
    """
    data = _validated(
        EmployeeCreationInput,
        {"name": name, "email": email, "position": position, "department": department},
        "employee_data",
    )
    repo = EmployeeRepo(session)
    if repo.get_by_email(data["email"]) is not None:
        raise IntegrityError(f"Employee with email {data['email']} exists", constraint="unique")
    employee = repo.create(**data)
    logger.info("Created employee %s with ID %s", employee.email, employee.id)
    return employee


@log_operation("list_employees")
def list_employees(session: Session) -> list[EmployeeORM]:
    return EmployeeRepo(session).list_all()


# ---------- Cycles ----------


@log_operation("create_cycle")
def create_cycle(
    session: Session,
    title: str,
    start_date: date,
    end_date: date,
    description: str | None = None,
    status: str = "draft",
) -> EvaluationCycleORM:
    """
    Create an evaluation cycle.

    Example:
        >>> cycle = create_cycle(session, "2025 H1", date(2025, 1, 1), date(2025, 6, 30))
        >>> cycle.status, cycle.is_editable
        ('draft', True)
    """
    data = _validated(
        CycleCreationInput,
        {
            "title": title,
            "start_date": start_date,
            "end_date": end_date,
            "description": description,
            "status": status,
        },
        "cycle_data",
    )
    repo = CycleRepo(session)
    cycle = repo.create(**data)
    if cycle.status == "open":
        repo.close_open_except(cycle.id)
    logger.info("Created cycle '%s' with ID %s", cycle.title, cycle.id)
    return cycle


@log_operation("list_cycles")
def list_cycles(session: Session) -> list[EvaluationCycleORM]:
    return CycleRepo(session).list_all()


@log_operation("get_current_cycle")
def get_current_cycle(session: Session, today: date | None = None) -> EvaluationCycleORM | None:
    """Newest open or active cycle whose period contains ``today``."""
    return CycleRepo(session).current(today or date.today())


@log_operation("update_cycle_status")
def update_cycle_status(session: Session, cycle_id: int, status: str) -> EvaluationCycleORM:
    """
    Move a cycle to ``status``.

    Opening a cycle closes every other open cycle; a closed cycle is no
    longer editable.
    """
    if status not in ("draft", "open", "active", "closed"):
        raise ValidationError("status", f"Unknown cycle status '{status}'", status)

    repo = CycleRepo(session)
    cycle = repo.get_by_id_required(cycle_id)
    if status == "open":
        closed = repo.close_open_except(cycle_id)
        if closed:
            logger.info("Closed %d other open cycle(s) while opening cycle %s", closed, cycle_id)
    return repo.set_status(cycle, status)


# ---------- Evaluations ----------


def _score_evaluation(
    competencies: list[dict[str, Any]],
) -> CategoryBreakdown:
    _check_range(
        ((f"competencies.{c['name']}", c.get("score")) for c in competencies),
        _interactive_range(),
    )
    return _scoring().breakdown(_competency_scores(competencies))


@log_operation("create_self_evaluation")
def create_self_evaluation(
    session: Session,
    cycle_id: int,
    employee_id: int,
    competencies: list[CompetencyScoreInput | dict[str, Any]],
) -> SelfEvaluationORM:
    """
    Record (or replace) an employee's self-evaluation for a cycle.

    Category scores and the final score come from the scoring engine and
    are stored with the competency rows.

    Raises:
        MultipleValidationError: If a competency score is out of range
        CycleClosedError: If the cycle is closed
    """
    data = _validated(
        SelfEvaluationInput,
        {"cycle_id": cycle_id, "employee_id": employee_id, "competencies": competencies},
        "self_evaluation",
    )
    _editable_cycle(session, cycle_id)
    EmployeeRepo(session).get_by_id_required(employee_id)
    breakdown = _score_evaluation(data["competencies"])

    repo = SelfEvaluationRepo(session)
    evaluation, created = repo.upsert(
        employee_id,
        cycle_id,
        status="completed",
        evaluation_date=date.today(),
        **breakdown.as_columns(),
    )
    repo.replace_competencies(evaluation, _competency_rows(data["competencies"]))
    logger.info(
        "%s self-evaluation %s (final score %.3f)",
        "Created" if created else "Updated",
        evaluation.id,
        evaluation.final_score,
    )
    return evaluation


@log_operation("create_leader_evaluation")
def create_leader_evaluation(
    session: Session,
    cycle_id: int,
    employee_id: int,
    evaluator_id: int,
    competencies: list[CompetencyScoreInput | dict[str, Any]],
    potential_score: float | None = None,
    potential_indicators: Mapping[str, float | None] | None = None,
    strengths: str | None = None,
    improvements: str | None = None,
    observations: str | None = None,
) -> LeaderEvaluationORM:
    """
    Record (or replace) a leader's evaluation of an employee.

    When no direct ``potential_score`` is given it is computed from the
    potential indicators.
    """
    data = _validated(
        LeaderEvaluationInput,
        {
            "cycle_id": cycle_id,
            "employee_id": employee_id,
            "evaluator_id": evaluator_id,
            "competencies": competencies,
            "potential_score": potential_score,
            "potential_indicators": dict(potential_indicators) if potential_indicators else None,
            "strengths": strengths,
            "improvements": improvements,
            "observations": observations,
        },
        "leader_evaluation",
    )
    _editable_cycle(session, cycle_id)
    employees = EmployeeRepo(session)
    employees.get_by_id_required(employee_id)
    employees.get_by_id_required(evaluator_id)

    indicators = data["potential_indicators"] or {}
    _check_range(
        [("potential_score", data["potential_score"])]
        + [(f"potential_indicators.{k}", v) for k, v in indicators.items()],
        _interactive_range(),
    )
    breakdown = _score_evaluation(data["competencies"])
    potential = data["potential_score"]
    if potential is None and indicators:
        potential = _scoring().compute_potential_score(indicators)

    repo = LeaderEvaluationRepo(session)
    evaluation, created = repo.upsert(
        employee_id,
        cycle_id,
        evaluator_id=evaluator_id,
        status="completed",
        potential_score=potential,
        strengths=data["strengths"],
        improvements=data["improvements"],
        observations=data["observations"],
        evaluation_date=date.today(),
        **breakdown.as_columns(),
    )
    repo.replace_competencies(evaluation, _competency_rows(data["competencies"]))
    logger.info(
        "%s leader evaluation %s (final %.3f, potential %s)",
        "Created" if created else "Updated",
        evaluation.id,
        evaluation.final_score,
        evaluation.potential_score,
    )
    return evaluation


@log_operation("list_self_evaluations")
def list_self_evaluations(
    session: Session, employee_id: int, cycle_id: int | None = None
) -> list[SelfEvaluationORM]:
    return SelfEvaluationRepo(session).list_for_employee(employee_id, cycle_id)


@log_operation("list_leader_evaluations")
def list_leader_evaluations(
    session: Session, employee_id: int, cycle_id: int | None = None
) -> list[LeaderEvaluationORM]:
    return LeaderEvaluationRepo(session).list_for_employee(employee_id, cycle_id)


@log_operation("check_existing_evaluation")
def check_existing_evaluation(
    session: Session, cycle_id: int, employee_id: int, kind: str
) -> bool:
    """Whether a ``self`` or ``leader`` evaluation exists for (employee, cycle)."""
    if kind == "self":
        repo: SelfEvaluationRepo | LeaderEvaluationRepo = SelfEvaluationRepo(session)
    elif kind == "leader":
        repo = LeaderEvaluationRepo(session)
    else:
        raise ValidationError("kind", "must be 'self' or 'leader'", kind)
    return repo.find(employee_id, cycle_id) is not None


# ---------- Consensus and nine-box ----------


def _linked_evaluation(
    repo: SelfEvaluationRepo | LeaderEvaluationRepo,
    evaluation_id: int | None,
    employee_id: int,
    cycle_id: int,
) -> int | None:
    if evaluation_id is None:
        found = repo.find(employee_id, cycle_id)
        return found.id if found else None
    evaluation = repo.get_by_id_required(evaluation_id)
    if (evaluation.employee_id, evaluation.cycle_id) != (employee_id, cycle_id):
        raise BusinessLogicError(
            f"Evaluation {evaluation_id} belongs to another employee or cycle",
            rule="consensus_evaluation_link",
        )
    return evaluation.id



@log_operation("create_consensus_meeting")
def create_consensus_meeting(
    session: Session,
    cycle_id: int,
    employee_id: int,
    meeting_date: date | None = None,
    self_evaluation_id: int | None = None,
    leader_evaluation_id: int | None = None,
    notes: str | None = None,
    participants: list[str] | None = None,
) -> ConsensusMeetingORM:
    """
    Schedule a consensus meeting.

    Missing evaluation links are filled with the employee's current self
    and leader evaluations for the cycle.

    Raises:
        BusinessLogicError: If a given evaluation belongs to another
            employee or cycle
    """
    data = _validated(
        ConsensusMeetingInput,
        {
            "cycle_id": cycle_id,
            "employee_id": employee_id,
            "meeting_date": meeting_date,
            "self_evaluation_id": self_evaluation_id,
            "leader_evaluation_id": leader_evaluation_id,
            "notes": notes,
            "participants": participants or [],
        },
        "consensus_meeting",
    )
    _editable_cycle(session, cycle_id)
    EmployeeRepo(session).get_by_id_required(employee_id)

    data["self_evaluation_id"] = _linked_evaluation(
        SelfEvaluationRepo(session), data["self_evaluation_id"], employee_id, cycle_id
    )
    data["leader_evaluation_id"] = _linked_evaluation(
        LeaderEvaluationRepo(session), data["leader_evaluation_id"], employee_id, cycle_id
    )

    meeting = ConsensusMeetingRepo(session).create(
        cycle_id=cycle_id,
        employee_id=employee_id,
        self_evaluation_id=data["self_evaluation_id"],
        leader_evaluation_id=data["leader_evaluation_id"],
        meeting_date=data["meeting_date"],
        meeting_notes=data["notes"],
        participants=encode_list(data["participants"]),
        status="scheduled",
    )
    logger.info("Scheduled consensus meeting %s for employee %s", meeting.id, employee_id)
    return meeting


@log_operation("complete_consensus_meeting")
def complete_consensus_meeting(
    session: Session,
    meeting_id: int,
    performance_score: float | None = None,
    potential_score: float | None = None,
    notes: str | None = None,
    competencies: Mapping[str, Any] | None = None,
    potential_indicators: Mapping[str, float | None] | None = None,
) -> ConsensusMeetingORM:
    """
    Record the agreed scores of a consensus meeting and place the employee
    on the nine-box grid.

    Performance is either given or computed from ``competencies`` grouped by
    category; potential is either given or computed from the indicators.

    Example:
        >>> meeting = complete_consensus_meeting(
        ...     session, meeting_id=4,
        ...     competencies={"technical": {"Python": 4}, "deliveries": [3, 4]},
        ...     potential_indicators={"funcaoSubsequente": 3, "visaoSistemica": 4},
        ... )
        >>> meeting.status
        'completed'
    """
    data = _validated(
        ConsensusCompletionInput,
        {
            "performance_score": performance_score,
            "potential_score": potential_score,
            "notes": notes,
            "competencies": dict(competencies) if competencies else None,
            "potential_indicators": dict(potential_indicators) if potential_indicators else None,
        },
        "consensus_completion",
    )
    indicators = data["potential_indicators"] or {}
    _check_range(
        list(_grouped_values(data["competencies"] or {}, "competencies"))
        + [(f"potential_indicators.{k}", v) for k, v in indicators.items()],
        _interactive_range(),
    )
    meetings = ConsensusMeetingRepo(session)
    meeting = meetings.get_by_id_required(meeting_id)
    _editable_cycle(session, meeting.cycle_id)
    scoring = _scoring()

    with LogContext(employee_id=meeting.employee_id):
        performance = data["performance_score"]
        if performance is None:
            try:
                performance = scoring.compute_final_score_from_grouped(data["competencies"])
            except ValueError as e:
                raise ValidationError("competencies", str(e)) from e
        potential = data["potential_score"]
        if potential is None:
            potential = scoring.compute_potential_score(data["potential_indicators"])
        _check_range(
            [("performance_score", performance), ("potential_score", potential)],
            _interactive_range(),
        )

        placement = scoring.place_nine_box(performance, potential)
        meetings.update(
            meeting,
            consensus_performance_score=performance,
            consensus_potential_score=potential,
            meeting_notes=data["notes"] or meeting.meeting_notes,
            status="completed",
        )
        ConsensusEvaluationRepo(session).upsert(
            meeting.id,
            employee_id=meeting.employee_id,
            self_evaluation_id=meeting.self_evaluation_id,
            leader_evaluation_id=meeting.leader_evaluation_id,
            consensus_score=performance,
            potential_score=potential,
            nine_box_position=placement.label,
            notes=data["notes"],
            evaluation_date=date.today(),
        )
        logger.info(
            "Completed consensus meeting %s: performance %.3f, potential %.3f, %s",
            meeting.id,
            performance,
            potential,
            placement.label,
        )
    return meeting


@log_operation("get_nine_box_data")
def get_nine_box_data(session: Session, cycle_id: int) -> list[dict[str, Any]]:
    """One row per completed consensus meeting of the cycle."""
    CycleRepo(session).get_by_id_required(cycle_id)
    scoring = _scoring()
    rows: list[dict[str, Any]] = []
    for meeting in ConsensusMeetingRepo(session).list_for_cycle(cycle_id, status="completed"):
        placement = scoring.place_nine_box(
            meeting.consensus_performance_score, meeting.consensus_potential_score
        )
        rows.append(
            {
                "employee_id": meeting.employee_id,
                "employee_name": meeting.employee.name,
                "position": meeting.employee.position,
                "department": meeting.employee.department,
                "performance_score": meeting.consensus_performance_score,
                "potential_score": meeting.consensus_potential_score,
                "performance_level": placement.performance_level,
                "potential_level": placement.potential_level,
                "nine_box_position": placement.label,
                "cell": placement.cell,
            }
        )
    return rows


@log_operation("nine_box_grid")
def nine_box_grid(session: Session, cycle_id: int) -> pd.DataFrame:
    """
    Head count per nine-box cell.

    Rows run from high to low performance, columns from low to high
    potential, so the top-right cell is the strongest.
    """
    rows = get_nine_box_data(session, cycle_id)
    perf_order = [Level.HIGH.value, Level.MEDIUM.value, Level.LOW.value]
    pot_order = [Level.LOW.value, Level.MEDIUM.value, Level.HIGH.value]

    df = pd.DataFrame(
        [
            {
                "performance": r["performance_level"].value,
                "potential": r["potential_level"].value,
            }
            for r in rows
            if r["cell"] is not None
        ],
        columns=["performance", "potential"],
    )
    if df.empty:
        grid = pd.DataFrame(0, index=perf_order, columns=pot_order)
    else:
        grid = pd.crosstab(df["performance"], df["potential"]).reindex(
            index=perf_order, columns=pot_order, fill_value=0
        )
    grid.index.name = "performance"
    grid.columns.name = "potential"
    return grid.astype(int)


@log_operation("get_cycle_dashboard")
def get_cycle_dashboard(session: Session, cycle_id: int) -> list[dict[str, Any]]:
    """
    Evaluation progress of every employee in a cycle.

    Consensus scores are only reported once the meeting is completed.
    """
    CycleRepo(session).get_by_id_required(cycle_id)
    self_repo = SelfEvaluationRepo(session)
    leader_repo = LeaderEvaluationRepo(session)
    meetings = {m.employee_id: m for m in ConsensusMeetingRepo(session).list_for_cycle(cycle_id)}

    dashboard: list[dict[str, Any]] = []
    for employee in EmployeeRepo(session).list_all():
        self_eval = self_repo.find(employee.id, cycle_id)
        leader_eval = leader_repo.find(employee.id, cycle_id)
        meeting = meetings.get(employee.id)
        completed = meeting is not None and meeting.status == "completed"
        dashboard.append(
            {
                "employee_id": employee.id,
                "employee_name": employee.name,
                "position": employee.position,
                "self_evaluation_status": self_eval.status if self_eval else "pending",
                "self_evaluation_score": self_eval.final_score if self_eval else None,
                "leader_evaluation_status": leader_eval.status if leader_eval else "pending",
                "leader_evaluation_score": leader_eval.final_score if leader_eval else None,
                "consensus_status": meeting.status if meeting else "pending",
                "consensus_performance_score": (
                    meeting.consensus_performance_score if completed else None
                ),
                "consensus_potential_score": (
                    meeting.consensus_potential_score if completed else None
                ),
            }
        )
    return dashboard


# ---------- PDI ----------


def serialize_pdi(plan: DevelopmentPlanORM) -> dict[str, Any]:
    return {
        "id": plan.id,
        "employee_id": plan.employee_id,
        "cycle_id": plan.cycle_id,
        "goals": decode_list(plan.goals),
        "actions": decode_list(plan.actions),
        "resources": decode_list(plan.resources),
        "timeline": plan.timeline,
        "status": plan.status,
        "created_at": plan.created_at,
        "updated_at": plan.updated_at,
    }


@log_operation("save_pdi")
def save_pdi(
    session: Session,
    employee_id: int,
    goals: list[str],
    actions: list[str] | None = None,
    resources: list[str] | None = None,
    timeline: str | None = None,
    cycle_id: int | None = None,
    created_by: int | None = None,
) -> DevelopmentPlanORM:
    """
    Save a new development plan; the employee's previous active plan is
    marked completed.
    """
    data = _validated(
        PdiInput,
        {
            "employee_id": employee_id,
            "cycle_id": cycle_id,
            "goals": goals,
            "actions": actions or [],
            "resources": resources or [],
            "timeline": timeline,
        },
        "pdi_data",
    )
    EmployeeRepo(session).get_by_id_required(employee_id)
    if cycle_id is not None:
        CycleRepo(session).get_by_id_required(cycle_id)

    repo = DevelopmentPlanRepo(session)
    replaced = repo.complete_active(employee_id)
    plan = repo.create(status="active", created_by=created_by, **data)
    logger.info(
        "Saved PDI %s for employee %s (%d previous plan(s) completed)",
        plan.id,
        employee_id,
        replaced,
    )
    return plan


@log_operation("get_pdi")
def get_pdi(session: Session, employee_id: int) -> DevelopmentPlanORM | None:
    return DevelopmentPlanRepo(session).active_for_employee(employee_id)


@log_operation("update_pdi")
def update_pdi(session: Session, pdi_id: int, **fields: Any) -> DevelopmentPlanORM:
    data = _validated(PdiUpdateInput, fields, "pdi_update")
    changes = {k: v for k, v in data.items() if k in fields and v is not None}
    for key in ("goals", "actions", "resources"):
        if key in changes:
            changes[key] = [item.strip() for item in changes[key] if item and item.strip()]
    if "goals" in changes and not changes["goals"]:
        raise ValidationError("goals", "At least one non-empty goal is required")

    repo = DevelopmentPlanRepo(session)
    plan = repo.get_by_id_required(pdi_id)
    if not changes:
        return plan
    return repo.update(plan, **changes)


# ---------- Bulk upload ----------


def _bulk_validator() -> BulkValidator:
    return BulkValidator(get_settings().scoring.bulk_range())


def validate_bulk_evaluations(records: Iterable[Any]) -> BulkValidationResult:
    """Check every score of a batch without touching the database."""
    return _bulk_validator().validate(records)


def _parse_records(records: list[Any]) -> list[BatchRecordInput]:
    parsed: list[BatchRecordInput] = []
    errors: list[ValidationError] = []
    for index, record in enumerate(records):
        if isinstance(record, BatchRecordInput):
            parsed.append(record)
            continue
        try:
            parsed.append(BatchRecordInput.model_validate(record))
        except PydanticValidationError as e:
            for err in e.errors():
                loc = ".".join(str(x) for x in err["loc"]) or "record"
                errors.append(ValidationError(f"records[{index}].{loc}", err["msg"]))
    if errors:
        raise MultipleValidationError(errors)
    return parsed


def _split_bulk_section(
    section: Mapping[str, Any],
) -> tuple[dict[Category, Any], dict[str, Any]]:
    """Separate category keys from the other keys of a bulk score section."""
    grouped: dict[Category, Any] = {}
    extra: dict[str, Any] = {}
    for key, value in numeric_section(section).items():
        try:
            grouped[Category.parse(key)] = value
        except ValueError:
            extra[key] = value
    return grouped, extra


def _write_bulk_record(
    session: Session,
    scoring: ScoringService,
    validator: BulkValidator,
    cycle_id: int,
    record: BatchRecordInput,
    created_by: int | None,
) -> None:
    user_id = record.user_id
    EmployeeRepo(session).get_by_id_required(user_id)
    today = date.today()

    if validator.has_scores(record.self_evaluation):
        grouped, _ = _split_bulk_section(record.self_evaluation)
        breakdown = scoring.breakdown_from_grouped(grouped)
        SelfEvaluationRepo(session).upsert(
            user_id, cycle_id, status="completed", evaluation_date=today, **breakdown.as_columns()
        )

    if validator.has_scores(record.leader_evaluation):
        grouped, extra = _split_bulk_section(record.leader_evaluation)
        breakdown = scoring.breakdown_from_grouped(grouped)
        potential = extra.get("potential")
        LeaderEvaluationRepo(session).upsert(
            user_id,
            cycle_id,
            evaluator_id=created_by,
            status="completed",
            potential_score=potential if isinstance(potential, float) else None,
            evaluation_date=today,
            **breakdown.as_columns(),
        )

    if validator.has_scores(record.toolkit):
        toolkit = ToolkitRepo(session)
        for name, score in flat_scores(record.toolkit).items():
            toolkit.upsert(user_id, cycle_id, name, score)

    if record.pdi is not None and validator.has_pdi(record.pdi.model_dump()):
        plans = DevelopmentPlanRepo(session)
        fields = {
            "goals": record.pdi.goals(),
            "actions": record.pdi.actions(),
            "resources": record.pdi.resource_list(),
            "timeline": record.pdi.timeline or None,
        }
        existing = plans.active_for_employee(user_id, cycle_id)
        if existing is not None:
            plans.update(existing, **fields)
        else:
            plans.create(
                employee_id=user_id,
                cycle_id=cycle_id,
                status="active",
                created_by=created_by,
                **fields,
            )


@log_operation("bulk_create_evaluations")
def bulk_create_evaluations(
    session: Session,
    cycle_id: int,
    records: Iterable[Any],
    created_by: int | None = None,
) -> BulkSaveResult:
    """
    Persist a batch of evaluation records for one cycle.

    The whole batch is validated first and nothing is written when any
    score is invalid. Records with no data are skipped. The remaining
    records are written in order, each in its own savepoint, so one failing
    record does not undo the others.

    Raises:
        BulkValidationError: If any score in the batch is invalid
        MultipleValidationError: If a record is malformed (e.g. no userId)
        CycleClosedError: If the cycle is closed

    Example:
        >>> result = bulk_create_evaluations(session, 1, [
        ...     {"userId": 7, "selfEvaluation": {"technical": 4, "behavioral": 3}},
        ...     {"userId": 8},
        ... ])
        >>> result.success, result.skipped
        (1, 1)
    """
    batch = list(records)
    validator = _bulk_validator()
    validation = validator.validate(batch)
    if not validation.is_valid:
        logger.warning("Bulk upload rejected: %d error(s)", len(validation.errors))
        raise BulkValidationError(validation.errors)

    parsed = _parse_records(batch)
    _editable_cycle(session, cycle_id)
    scoring = _scoring()
    result = BulkSaveResult()

    for record in parsed:
        if not validator.is_complete(record):
            result.skipped += 1
            continue
        try:
            with LogContext(employee_id=record.user_id, cycle_id=cycle_id):
                with savepoint(session):
                    _write_bulk_record(session, scoring, validator, cycle_id, record, created_by)
            result.success += 1
        except Exception as e:
            message = e.message if isinstance(e, TalentGridError) else str(e)
            logger.warning(
                "Bulk record for user %s failed",
                record.user_id,
                extra=log_error_details(e, {"user_id": record.user_id, "cycle_id": cycle_id}),
            )
            result.errors.append(BULK_ERROR_TEMPLATE.format(user_id=record.user_id, message=message))

    logger.info(
        "Bulk upload for cycle %s: %d saved, %d skipped, %d failed",
        cycle_id,
        result.success,
        result.skipped,
        len(result.errors),
    )
    return result


# ---------- Scoring preview ----------


def preview_scores(
    competencies: list[CompetencyScoreInput | dict[str, Any]] | None = None,
    grouped: Mapping[str, Any] | None = None,
    potential_score: float | None = None,
    potential_indicators: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Run the scoring engine on a payload without persisting anything."""
    scoring = _scoring()
    if competencies:
        items = [
            c.model_dump() if isinstance(c, BaseModel) else dict(c) for c in competencies
        ]
        breakdown = scoring.breakdown(_competency_scores(items))
    else:
        try:
            breakdown = scoring.breakdown_from_grouped(grouped or {})
        except ValueError as e:
            raise ValidationError("grouped", str(e)) from e

    potential = potential_score
    if potential is None and potential_indicators:
        potential = scoring.compute_potential_score(potential_indicators)
    placement = scoring.place_nine_box(breakdown.final, potential)
    return {
        **breakdown.as_columns(),
        "potential_score": potential,
        "nine_box_position": placement.label,
        "cell": placement.cell,
    }
