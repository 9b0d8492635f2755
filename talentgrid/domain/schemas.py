"""
Pydantic schemas for input validation across the application.

These schemas validate API requests and service-layer inputs for cycles,
evaluations, consensus meetings, development plans and bulk uploads.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .models import Category


class BaseValidationSchema(BaseModel):
    """Base schema with common validation utilities."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        populate_by_name=True,
    )

    @field_validator("*", mode="before")
    def sanitize_strings(cls, v):
        """Strip markup and control characters from free text."""
        if isinstance(v, str):
            cleaned = re.sub(
                r"<\s*script[^>]*>.*?<\s*/\s*script\s*>",
                "",
                v.strip(),
                flags=re.IGNORECASE | re.DOTALL,
            )
            cleaned = re.sub(r"<[^>]+>", "", cleaned)
            cleaned = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]", "", cleaned)
            return cleaned
        return v


CycleStatus = Literal["draft", "open", "active", "closed"]
EvaluationKind = Literal["self", "leader"]


class EmployeeCreationInput(BaseValidationSchema):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    position: str | None = Field(None, max_length=255)
    department: str | None = Field(None, max_length=255)

    @field_validator("email")
    def validate_email(cls, v):
        if not re.match(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", v):
            raise ValueError("Email address is not valid")
        return v.lower()


class CycleCreationInput(BaseValidationSchema):
    """Validation schema for creating evaluation cycles."""

    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=5000)
    start_date: date
    end_date: date
    status: CycleStatus = "draft"

    @model_validator(mode="after")
    def validate_period(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self


class CompetencyScoreInput(BaseValidationSchema):
    """One scored (or still unscored) competency on an evaluation form."""

    name: str = Field(..., min_length=1, max_length=255)
    category: Category
    score: float | None = None
    description: str | None = Field(None, max_length=2000)
    written_response: str | None = Field(None, max_length=5000)


class SelfEvaluationInput(BaseValidationSchema):
    cycle_id: int = Field(..., gt=0)
    employee_id: int = Field(..., gt=0)
    competencies: list[CompetencyScoreInput] = Field(default_factory=list)


class LeaderEvaluationInput(SelfEvaluationInput):
    evaluator_id: int = Field(..., gt=0)
    potential_score: float | None = None
    potential_indicators: dict[str, float | None] | None = None
    strengths: str | None = Field(None, max_length=5000)
    improvements: str | None = Field(None, max_length=5000)
    observations: str | None = Field(None, max_length=5000)


class ConsensusMeetingInput(BaseValidationSchema):
    cycle_id: int = Field(..., gt=0)
    employee_id: int = Field(..., gt=0)
    self_evaluation_id: int | None = Field(None, gt=0)
    leader_evaluation_id: int | None = Field(None, gt=0)
    meeting_date: date | None = None
    performance_score: float | None = None
    potential_score: float | None = None
    notes: str | None = Field(None, max_length=10000)
    participants: list[str] = Field(default_factory=list)


class ConsensusCompletionInput(BaseValidationSchema):
    """
    Scores agreed at a consensus meeting.

    Performance may be given directly or as competencies grouped by
    category; potential directly or as the four potential indicators.
    """

    performance_score: float | None = None
    potential_score: float | None = None
    competencies: dict[str, Any] | None = None
    potential_indicators: dict[str, float | None] | None = None
    notes: str | None = Field(None, max_length=10000)

    @model_validator(mode="after")
    def validate_sources(self):
        if self.performance_score is None and not self.competencies:
            raise ValueError("performance_score or competencies is required")
        if self.potential_score is None and not self.potential_indicators:
            raise ValueError("potential_score or potential_indicators is required")
        return self


class PdiInput(BaseValidationSchema):
    """Validation schema for an individual development plan."""

    employee_id: int = Field(..., gt=0)
    cycle_id: int | None = Field(None, gt=0)
    goals: list[str] = Field(..., min_length=1)
    actions: list[str] = Field(default_factory=list)
    resources: list[str] = Field(default_factory=list)
    timeline: str | None = Field(None, max_length=2000)

    @field_validator("goals", "actions", "resources", mode="after")
    def drop_blank_items(cls, value: list[str]) -> list[str]:
        return [item.strip() for item in value if item and item.strip()]

    @model_validator(mode="after")
    def require_goal(self):
        if not self.goals:
            raise ValueError("At least one non-empty goal is required")
        return self


class PdiUpdateInput(BaseValidationSchema):
    model_config = ConfigDict(extra="forbid")

    goals: list[str] | None = None
    actions: list[str] | None = None
    resources: list[str] | None = None
    timeline: str | None = Field(None, max_length=2000)
    status: Literal["active", "completed"] | None = None


class BatchPdiInput(BaseValidationSchema):
    """PDI free text captured on the bulk upload grid."""

    short_term_goals: str = Field("", alias="shortTermGoals")
    medium_term_goals: str = Field("", alias="mediumTermGoals")
    long_term_goals: str = Field("", alias="longTermGoals")
    development_actions: str = Field("", alias="developmentActions")
    resources: str = ""
    timeline: str = ""

    def goals(self) -> list[str]:
        return [
            g
            for g in (self.short_term_goals, self.medium_term_goals, self.long_term_goals)
            if g.strip()
        ]

    def actions(self) -> list[str]:
        return [self.development_actions] if self.development_actions.strip() else []

    def resource_list(self) -> list[str]:
        return [self.resources] if self.resources.strip() else []


class BatchRecordInput(BaseValidationSchema):
    """
    One row of a bulk upload.

    Score sections are kept as free-form mappings so the validator can
    report every offending key, including nested ``{category: {name: score}}``
    shapes.
    """

    user_id: int = Field(..., gt=0, alias="userId")
    self_evaluation: dict[str, Any] | None = Field(None, alias="selfEvaluation")
    leader_evaluation: dict[str, Any] | None = Field(None, alias="leaderEvaluation")
    toolkit: dict[str, Any] | None = None
    pdi: BatchPdiInput | None = None


class ValidationErrorDetail(BaseModel):
    """Schema for validation error details."""

    field: str
    message: str
    value: Any = None


class ValidationResponse(BaseModel):
    """Schema for validation responses."""

    success: bool
    errors: list[ValidationErrorDetail] = []
    data: dict[str, Any] | None = None


def validate_input(schema_class: type[BaseModel], data: dict[str, Any]) -> ValidationResponse:
    """
    Centralized validation function that returns structured validation results.

    Example:
        >>> result = validate_input(CycleCreationInput, {"title": "2025", ...})
        >>> if not result.success:
        ...     for error in result.errors:
        ...         print(f"Error in {error.field}: {error.message}")
    """
    try:
        validated = schema_class(**data)
        return ValidationResponse(success=True, data=validated.model_dump())
    except Exception as e:
        errors = []
        if hasattr(e, "errors"):  # Pydantic validation errors
            for error in e.errors():
                errors.append(
                    ValidationErrorDetail(
                        field=".".join(str(x) for x in error["loc"]) or "general",
                        message=error["msg"],
                        value=error.get("input"),
                    )
                )
        else:
            errors.append(ValidationErrorDetail(field="general", message=str(e)))

        return ValidationResponse(success=False, errors=errors)
