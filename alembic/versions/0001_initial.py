"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

SCORE_COLUMNS_CHECK = (
    "technical_score >= 0 AND technical_score <= 5 "
    "AND behavioral_score >= 0 AND behavioral_score <= 5 "
    "AND deliveries_score >= 0 AND deliveries_score <= 5 "
    "AND final_score >= 0 AND final_score <= 5"
)


def _score_columns() -> list[sa.Column]:
    return [
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("technical_score", sa.Float(), nullable=False),
        sa.Column("behavioral_score", sa.Float(), nullable=False),
        sa.Column("deliveries_score", sa.Float(), nullable=False),
        sa.Column("final_score", sa.Float(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("position", sa.String(length=255), nullable=True),
        sa.Column("department", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "evaluation_cycles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("is_editable", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "status IN ('draft', 'open', 'active', 'closed')", name="ck_cycle_status"
        ),
        sa.CheckConstraint("end_date >= start_date", name="ck_cycle_period"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "self_evaluations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("cycle_id", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        *_score_columns(),
        sa.Column("evaluation_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(SCORE_COLUMNS_CHECK, name="ck_self_eval_scores"),
        sa.ForeignKeyConstraint(["cycle_id"], ["evaluation_cycles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_self_evaluations_cycle_id", "self_evaluations", ["cycle_id"])
    op.create_index("ix_self_evaluations_employee_id", "self_evaluations", ["employee_id"])

    op.create_table(
        "leader_evaluations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("cycle_id", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("evaluator_id", sa.Integer(), nullable=True),
        *_score_columns(),
        sa.Column("potential_score", sa.Float(), nullable=True),
        sa.Column("strengths", sa.Text(), nullable=True),
        sa.Column("improvements", sa.Text(), nullable=True),
        sa.Column("observations", sa.Text(), nullable=True),
        sa.Column("evaluation_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(SCORE_COLUMNS_CHECK, name="ck_leader_eval_scores"),
        sa.CheckConstraint(
            "potential_score IS NULL OR (potential_score >= 0 AND potential_score <= 5)",
            name="ck_leader_eval_potential",
        ),
        sa.ForeignKeyConstraint(["cycle_id"], ["evaluation_cycles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["evaluator_id"], ["employees.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_leader_evaluations_cycle_id", "leader_evaluations", ["cycle_id"])
    op.create_index("ix_leader_evaluations_employee_id", "leader_evaluations", ["employee_id"])

    op.create_table(
        "evaluation_competencies",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("self_evaluation_id", sa.Integer(), nullable=True),
        sa.Column("leader_evaluation_id", sa.Integer(), nullable=True),
        sa.Column("employee_id", sa.Integer(), nullable=True),
        sa.Column("cycle_id", sa.Integer(), nullable=True),
        sa.Column("criterion_name", sa.String(length=255), nullable=False),
        sa.Column("criterion_description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=16), nullable=False),
        sa.Column("score", sa.Float(), nullable=True),
        sa.Column("written_response", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "category IN ('technical', 'behavioral', 'deliveries')", name="ck_competency_category"
        ),
        sa.CheckConstraint(
            "score IS NULL OR (score >= 1 AND score <= 5)", name="ck_competency_score"
        ),
        sa.ForeignKeyConstraint(
            ["self_evaluation_id"], ["self_evaluations.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["leader_evaluation_id"], ["leader_evaluations.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["cycle_id"], ["evaluation_cycles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_evaluation_competencies_self_evaluation_id",
        "evaluation_competencies",
        ["self_evaluation_id"],
    )
    op.create_index(
        "ix_evaluation_competencies_leader_evaluation_id",
        "evaluation_competencies",
        ["leader_evaluation_id"],
    )
    op.create_index(
        "ix_evaluation_competencies_employee_id", "evaluation_competencies", ["employee_id"]
    )

    op.create_table(
        "consensus_meetings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("cycle_id", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("self_evaluation_id", sa.Integer(), nullable=True),
        sa.Column("leader_evaluation_id", sa.Integer(), nullable=True),
        sa.Column("meeting_date", sa.Date(), nullable=True),
        sa.Column("consensus_performance_score", sa.Float(), nullable=False),
        sa.Column("consensus_potential_score", sa.Float(), nullable=False),
        sa.Column("meeting_notes", sa.Text(), nullable=True),
        sa.Column("participants", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("status IN ('scheduled', 'completed')", name="ck_meeting_status"),
        sa.ForeignKeyConstraint(["cycle_id"], ["evaluation_cycles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["self_evaluation_id"], ["self_evaluations.id"], ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(
            ["leader_evaluation_id"], ["leader_evaluations.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_consensus_meetings_cycle_id", "consensus_meetings", ["cycle_id"])
    op.create_index("ix_consensus_meetings_employee_id", "consensus_meetings", ["employee_id"])

    op.create_table(
        "consensus_evaluations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("meeting_id", sa.Integer(), nullable=False),
        sa.Column("self_evaluation_id", sa.Integer(), nullable=True),
        sa.Column("leader_evaluation_id", sa.Integer(), nullable=True),
        sa.Column("consensus_score", sa.Float(), nullable=False),
        sa.Column("potential_score", sa.Float(), nullable=False),
        sa.Column("nine_box_position", sa.String(length=64), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("evaluation_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["meeting_id"], ["consensus_meetings.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["self_evaluation_id"], ["self_evaluations.id"], ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(
            ["leader_evaluation_id"], ["leader_evaluations.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("meeting_id"),
    )
    op.create_index(
        "ix_consensus_evaluations_employee_id", "consensus_evaluations", ["employee_id"]
    )

    op.create_table(
        "development_plans",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("cycle_id", sa.Integer(), nullable=True),
        sa.Column("goals", sa.Text(), nullable=False),
        sa.Column("actions", sa.Text(), nullable=False),
        sa.Column("resources", sa.Text(), nullable=False),
        sa.Column("timeline", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("status IN ('active', 'completed')", name="ck_pdi_status"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["cycle_id"], ["evaluation_cycles.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["created_by"], ["employees.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_development_plans_employee_id", "development_plans", ["employee_id"])


def downgrade() -> None:
    op.drop_index("ix_development_plans_employee_id", table_name="development_plans")
    op.drop_table("development_plans")
    op.drop_index("ix_consensus_evaluations_employee_id", table_name="consensus_evaluations")
    op.drop_table("consensus_evaluations")
    op.drop_index("ix_consensus_meetings_employee_id", table_name="consensus_meetings")
    op.drop_index("ix_consensus_meetings_cycle_id", table_name="consensus_meetings")
    op.drop_table("consensus_meetings")
    op.drop_index("ix_evaluation_competencies_employee_id", table_name="evaluation_competencies")
    op.drop_index(
        "ix_evaluation_competencies_leader_evaluation_id", table_name="evaluation_competencies"
    )
    op.drop_index(
        "ix_evaluation_competencies_self_evaluation_id", table_name="evaluation_competencies"
    )
    op.drop_table("evaluation_competencies")
    op.drop_index("ix_leader_evaluations_employee_id", table_name="leader_evaluations")
    op.drop_index("ix_leader_evaluations_cycle_id", table_name="leader_evaluations")
    op.drop_table("leader_evaluations")
    op.drop_index("ix_self_evaluations_employee_id", table_name="self_evaluations")
    op.drop_index("ix_self_evaluations_cycle_id", table_name="self_evaluations")
    op.drop_table("self_evaluations")
    op.drop_table("evaluation_cycles")
    op.drop_table("employees")
