from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Derived scores default to 0 for an empty category, so the floor is 0 not 1
_SCORE_COLUMNS_CHECK = (
    "technical_score >= 0 AND technical_score <= 5 "
    "AND behavioral_score >= 0 AND behavioral_score <= 5 "
    "AND deliveries_score >= 0 AND deliveries_score <= 5 "
    "AND final_score >= 0 AND final_score <= 5"
)


class Base(DeclarativeBase):
    pass


class EmployeeORM(Base):
    __tablename__ = "employees"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    position: Mapped[str | None] = mapped_column(String(255), nullable=True)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)


class EvaluationCycleORM(Base):
    __tablename__ = "evaluation_cycles"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="draft", nullable=False)
    is_editable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'open', 'active', 'closed')", name="ck_cycle_status"
        ),
        CheckConstraint("end_date >= start_date", name="ck_cycle_period"),
    )


class SelfEvaluationORM(Base):
    __tablename__ = "self_evaluations"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    cycle_id: Mapped[int] = mapped_column(
        ForeignKey("evaluation_cycles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(16), default="completed", nullable=False)
    technical_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    behavioral_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    deliveries_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    final_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    evaluation_date: Mapped[date] = mapped_column(Date, default=date.today, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow, nullable=False
    )

    __table_args__ = (CheckConstraint(_SCORE_COLUMNS_CHECK, name="ck_self_eval_scores"),)

    employee: Mapped[EmployeeORM] = relationship()
    competencies: Mapped[list[EvaluationCompetencyORM]] = relationship(
        back_populates="self_evaluation", cascade="all, delete-orphan"
    )


class LeaderEvaluationORM(Base):
    __tablename__ = "leader_evaluations"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    cycle_id: Mapped[int] = mapped_column(
        ForeignKey("evaluation_cycles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True
    )
    evaluator_id: Mapped[int | None] = mapped_column(
        ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(16), default="completed", nullable=False)
    technical_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    behavioral_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    deliveries_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    final_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    potential_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    strengths: Mapped[str | None] = mapped_column(Text, nullable=True)
    improvements: Mapped[str | None] = mapped_column(Text, nullable=True)
    observations: Mapped[str | None] = mapped_column(Text, nullable=True)
    evaluation_date: Mapped[date] = mapped_column(Date, default=date.today, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(_SCORE_COLUMNS_CHECK, name="ck_leader_eval_scores"),
        CheckConstraint(
            "potential_score IS NULL OR (potential_score >= 0 AND potential_score <= 5)",
            name="ck_leader_eval_potential",
        ),
    )

    employee: Mapped[EmployeeORM] = relationship(foreign_keys=[employee_id])
    evaluator: Mapped[EmployeeORM | None] = relationship(foreign_keys=[evaluator_id])
    competencies: Mapped[list[EvaluationCompetencyORM]] = relationship(
        back_populates="leader_evaluation", cascade="all, delete-orphan"
    )


class EvaluationCompetencyORM(Base):
    """
    A scored criterion. Belongs to a self or leader evaluation, or stands
    alone (employee + cycle) for toolkit scores entered in bulk.
    """

    __tablename__ = "evaluation_competencies"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    self_evaluation_id: Mapped[int | None] = mapped_column(
        ForeignKey("self_evaluations.id", ondelete="CASCADE"), nullable=True, index=True
    )
    leader_evaluation_id: Mapped[int | None] = mapped_column(
        ForeignKey("leader_evaluations.id", ondelete="CASCADE"), nullable=True, index=True
    )
    employee_id: Mapped[int | None] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"), nullable=True, index=True
    )
    cycle_id: Mapped[int | None] = mapped_column(
        ForeignKey("evaluation_cycles.id", ondelete="CASCADE"), nullable=True
    )
    criterion_name: Mapped[str] = mapped_column(String(255), nullable=False)
    criterion_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(16), nullable=False)
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    written_response: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "category IN ('technical', 'behavioral', 'deliveries')", name="ck_competency_category"
        ),
        CheckConstraint("score IS NULL OR (score >= 1 AND score <= 5)", name="ck_competency_score"),
    )

    self_evaluation: Mapped[SelfEvaluationORM | None] = relationship(
        back_populates="competencies"
    )
    leader_evaluation: Mapped[LeaderEvaluationORM | None] = relationship(
        back_populates="competencies"
    )


class ConsensusMeetingORM(Base):
    __tablename__ = "consensus_meetings"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    cycle_id: Mapped[int] = mapped_column(
        ForeignKey("evaluation_cycles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True
    )
    self_evaluation_id: Mapped[int | None] = mapped_column(
        ForeignKey("self_evaluations.id", ondelete="SET NULL"), nullable=True
    )
    leader_evaluation_id: Mapped[int | None] = mapped_column(
        ForeignKey("leader_evaluations.id", ondelete="SET NULL"), nullable=True
    )
    meeting_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    consensus_performance_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    consensus_potential_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    meeting_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    participants: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON list
    status: Mapped[str] = mapped_column(String(16), default="scheduled", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("status IN ('scheduled', 'completed')", name="ck_meeting_status"),
    )

    employee: Mapped[EmployeeORM] = relationship()


class ConsensusEvaluationORM(Base):
    __tablename__ = "consensus_evaluations"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True
    )
    meeting_id: Mapped[int] = mapped_column(
        ForeignKey("consensus_meetings.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    self_evaluation_id: Mapped[int | None] = mapped_column(
        ForeignKey("self_evaluations.id", ondelete="SET NULL"), nullable=True
    )
    leader_evaluation_id: Mapped[int | None] = mapped_column(
        ForeignKey("leader_evaluations.id", ondelete="SET NULL"), nullable=True
    )
    consensus_score: Mapped[float] = mapped_column(Float, nullable=False)
    potential_score: Mapped[float] = mapped_column(Float, nullable=False)
    nine_box_position: Mapped[str] = mapped_column(String(64), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    evaluation_date: Mapped[date] = mapped_column(Date, default=date.today, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow, nullable=False
    )


class DevelopmentPlanORM(Base):
    __tablename__ = "development_plans"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True
    )
    cycle_id: Mapped[int | None] = mapped_column(
        ForeignKey("evaluation_cycles.id", ondelete="SET NULL"), nullable=True
    )
    goals: Mapped[str] = mapped_column(Text, nullable=False, default="[]")  # JSON list
    actions: Mapped[str] = mapped_column(Text, nullable=False, default="[]")  # JSON list
    resources: Mapped[str] = mapped_column(Text, nullable=False, default="[]")  # JSON list
    timeline: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="active", nullable=False)
    created_by: Mapped[int | None] = mapped_column(
        ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("status IN ('active', 'completed')", name="ck_pdi_status"),
    )
