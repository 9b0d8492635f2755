from datetime import date

import pytest

from talentgrid.application import api
from talentgrid.infrastructure.exceptions import (
    BusinessLogicError,
    ConsensusMeetingNotFoundError,
    CycleClosedError,
    CycleNotFoundError,
    DevelopmentPlanNotFoundError,
    EmployeeNotFoundError,
    EvaluationNotFoundError,
    IntegrityError,
    MultipleValidationError,
    ValidationError,
)
from talentgrid.infrastructure.models import (
    ConsensusEvaluationORM,
    EvaluationCompetencyORM,
)
from talentgrid.infrastructure.repositories import decode_list

COMPETENCIES = [
    {"name": "Python", "category": "technical", "score": 4},
    {"name": "SQL", "category": "technical", "score": 3},
    {"name": "Comunicação", "category": "behavioral", "score": 3},
    {"name": "Prazo", "category": "deliveries", "score": None},
]


class TestEmployees:
    def test_create_and_list(self, session):
        api.create_employee(session, "Bruno Lima", "Bruno@Example.com", position="Dev")
        api.create_employee(session, "Ana Souza", "ana@example.com")
        employees = api.list_employees(session)
        assert [e.name for e in employees] == ["Ana Souza", "Bruno Lima"]
        assert employees[1].email == "bruno@example.com"

    def test_duplicate_email(self, session):
        api.create_employee(session, "Ana Souza", "ana@example.com")
        with pytest.raises(IntegrityError):
            api.create_employee(session, "Ana S.", "ANA@example.com")

    def test_invalid_email(self, session):
        with pytest.raises(ValidationError):
            api.create_employee(session, "Ana", "not-an-email")


class TestCycles:
    def test_create_cycle_defaults(self, session):
        cycle = api.create_cycle(session, "2025 H1", date(2025, 1, 1), date(2025, 6, 30))
        assert cycle.status == "draft"
        assert cycle.is_editable is True

    def test_end_before_start_rejected(self, session):
        with pytest.raises(ValidationError):
            api.create_cycle(session, "Bad", date(2025, 6, 30), date(2025, 1, 1))

    def test_opening_closes_other_open_cycles(self, session, make_cycle):
        first = make_cycle(status="open", title="A")
        second = make_cycle(status="draft", title="B")
        api.update_cycle_status(session, second.id, "open")
        assert first.status == "closed"
        assert first.is_editable is False
        assert second.status == "open"

    def test_close_makes_cycle_read_only(self, session, make_cycle):
        cycle = make_cycle(status="open")
        api.update_cycle_status(session, cycle.id, "closed")
        assert cycle.is_editable is False

    def test_unknown_status(self, session, make_cycle):
        cycle = make_cycle()
        with pytest.raises(ValidationError):
            api.update_cycle_status(session, cycle.id, "archived")

    def test_missing_cycle(self, session):
        with pytest.raises(CycleNotFoundError):
            api.update_cycle_status(session, 999, "open")

    def test_current_cycle(self, session, make_cycle):
        make_cycle(status="draft", title="Draft")
        open_cycle = make_cycle(status="open", title="Open")
        assert api.get_current_cycle(session, today=date(2025, 3, 1)).id == open_cycle.id
        assert api.get_current_cycle(session, today=date(2026, 3, 1)) is None

    def test_list_newest_first(self, session):
        api.create_cycle(session, "Old", date(2024, 1, 1), date(2024, 6, 30))
        api.create_cycle(session, "New", date(2025, 1, 1), date(2025, 6, 30))
        assert [c.title for c in api.list_cycles(session)] == ["New", "Old"]


class TestEvaluations:
    def test_self_evaluation_scores_from_engine(self, session, make_employee, make_cycle):
        employee = make_employee()
        cycle = make_cycle()
        evaluation = api.create_self_evaluation(session, cycle.id, employee.id, COMPETENCIES)

        assert evaluation.technical_score == 3.5
        assert evaluation.behavioral_score == 3.0
        assert evaluation.deliveries_score == 0.0
        # (3.5*.5 + 3*.3) / .8
        assert evaluation.final_score == 3.313
        assert len(evaluation.competencies) == 4
        assert {c.category for c in evaluation.competencies} == {
            "technical",
            "behavioral",
            "deliveries",
        }

    def test_self_evaluation_is_upserted(self, session, make_employee, make_cycle):
        employee = make_employee()
        cycle = make_cycle()
        first = api.create_self_evaluation(session, cycle.id, employee.id, COMPETENCIES)
        second = api.create_self_evaluation(
            session, cycle.id, employee.id, [{"name": "Python", "category": "technical", "score": 2}]
        )
        assert first.id == second.id
        assert second.final_score == 2.0
        assert session.query(EvaluationCompetencyORM).count() == 1
        assert len(api.list_self_evaluations(session, employee.id)) == 1

    def test_interactive_scores_limited_to_four(self, session, make_employee, make_cycle):
        employee = make_employee()
        cycle = make_cycle()
        with pytest.raises(MultipleValidationError) as excinfo:
            api.create_self_evaluation(
                session,
                cycle.id,
                employee.id,
                [
                    {"name": "Python", "category": "technical", "score": 5},
                    {"name": "SQL", "category": "technical", "score": 0},
                ],
            )
        assert len(excinfo.value.validation_errors) == 2

    def test_closed_cycle_rejects_writes(self, session, make_employee, make_cycle):
        employee = make_employee()
        cycle = make_cycle(status="closed")
        with pytest.raises(CycleClosedError):
            api.create_self_evaluation(session, cycle.id, employee.id, COMPETENCIES)

    def test_unknown_employee(self, session, make_cycle):
        cycle = make_cycle()
        with pytest.raises(EmployeeNotFoundError):
            api.create_self_evaluation(session, cycle.id, 404, COMPETENCIES)

    def test_leader_potential_from_indicators(self, session, make_employee, make_cycle):
        employee = make_employee()
        leader = make_employee("Carla Dias")
        cycle = make_cycle()
        evaluation = api.create_leader_evaluation(
            session,
            cycle.id,
            employee.id,
            leader.id,
            COMPETENCIES,
            potential_indicators={
                "funcaoSubsequente": 3,
                "aprendizadoContinuo": 4,
                "alinhamentoCultural": None,
                "visaoSistemica": 4,
            },
            strengths="Entrega consistente",
        )
        assert evaluation.potential_score == 3.667
        assert evaluation.evaluator_id == leader.id
        assert evaluation.strengths == "Entrega consistente"

    def test_leader_direct_potential_wins(self, session, make_employee, make_cycle):
        employee = make_employee()
        leader = make_employee("Carla Dias")
        cycle = make_cycle()
        evaluation = api.create_leader_evaluation(
            session,
            cycle.id,
            employee.id,
            leader.id,
            COMPETENCIES,
            potential_score=2,
            potential_indicators={"visaoSistemica": 4},
        )
        assert evaluation.potential_score == 2

    def test_check_existing(self, session, make_employee, make_cycle):
        employee = make_employee()
        cycle = make_cycle()
        assert api.check_existing_evaluation(session, cycle.id, employee.id, "self") is False
        api.create_self_evaluation(session, cycle.id, employee.id, COMPETENCIES)
        assert api.check_existing_evaluation(session, cycle.id, employee.id, "self") is True
        assert api.check_existing_evaluation(session, cycle.id, employee.id, "leader") is False
        with pytest.raises(ValidationError):
            api.check_existing_evaluation(session, cycle.id, employee.id, "peer")


class TestConsensus:
    def test_complete_with_direct_scores(self, session, make_employee, make_cycle):
        employee = make_employee()
        cycle = make_cycle()
        meeting = api.create_consensus_meeting(session, cycle.id, employee.id)
        assert meeting.status == "scheduled"

        api.complete_consensus_meeting(session, meeting.id, performance_score=4, potential_score=4)
        assert meeting.status == "completed"
        row = session.query(ConsensusEvaluationORM).filter_by(meeting_id=meeting.id).one()
        assert row.nine_box_position == "Estrela"
        assert row.consensus_score == 4

    def test_complete_from_competencies_and_indicators(self, session, make_employee, make_cycle):
        employee = make_employee()
        cycle = make_cycle()
        meeting = api.create_consensus_meeting(session, cycle.id, employee.id)
        api.complete_consensus_meeting(
            session,
            meeting.id,
            competencies={"technical": {"Python": 4}, "behavioral": {"Comunicação": None}},
            potential_indicators={"funcaoSubsequente": 2, "visaoSistemica": 2},
        )
        assert meeting.consensus_performance_score == 4.0
        assert meeting.consensus_potential_score == 2.0
        row = session.query(ConsensusEvaluationORM).filter_by(meeting_id=meeting.id).one()
        assert row.nine_box_position == "Especialista"

    def test_meeting_links_existing_evaluations(self, session, make_employee, make_cycle):
        employee = make_employee()
        cycle = make_cycle()
        evaluation = api.create_self_evaluation(session, cycle.id, employee.id, COMPETENCIES)
        meeting = api.create_consensus_meeting(session, cycle.id, employee.id)
        assert meeting.self_evaluation_id == evaluation.id
        assert meeting.leader_evaluation_id is None

    def test_meeting_rejects_evaluation_of_someone_else(self, session, make_employee, make_cycle):
        ana = make_employee("Ana Souza")
        bruno = make_employee("Bruno Lima")
        cycle = make_cycle()
        evaluation = api.create_self_evaluation(session, cycle.id, ana.id, COMPETENCIES)
        with pytest.raises(BusinessLogicError):
            api.create_consensus_meeting(
                session, cycle.id, bruno.id, self_evaluation_id=evaluation.id
            )
        with pytest.raises(EvaluationNotFoundError):
            api.create_consensus_meeting(session, cycle.id, bruno.id, leader_evaluation_id=99)

    def test_both_axes_required(self, session, make_employee, make_cycle):
        employee = make_employee()
        cycle = make_cycle()
        meeting = api.create_consensus_meeting(session, cycle.id, employee.id)
        with pytest.raises(ValidationError):
            api.complete_consensus_meeting(session, meeting.id, performance_score=3)

    def test_each_competency_and_indicator_is_range_checked(
        self, session, make_employee, make_cycle
    ):
        employee = make_employee()
        cycle = make_cycle()
        meeting = api.create_consensus_meeting(session, cycle.id, employee.id)

        # The averages, 3.0 each, would be in range
        with pytest.raises(MultipleValidationError) as excinfo:
            api.complete_consensus_meeting(
                session,
                meeting.id,
                competencies={"technical": [10, -4], "behavioral": {"Comunicação": 3}},
                potential_indicators={"funcaoSubsequente": 9, "visaoSistemica": -3},
            )
        fields = [e.field for e in excinfo.value.validation_errors]
        assert fields == [
            "competencies.technical[0]",
            "competencies.technical[1]",
            "potential_indicators.funcaoSubsequente",
            "potential_indicators.visaoSistemica",
        ]
        assert meeting.status == "scheduled"
        assert session.query(ConsensusEvaluationORM).count() == 0

    def test_unknown_meeting(self, session):
        with pytest.raises(ConsensusMeetingNotFoundError):
            api.complete_consensus_meeting(session, 99, performance_score=3, potential_score=3)

    def test_nine_box_data_and_grid(self, session, make_employee, make_cycle):
        cycle = make_cycle()
        placements = [(4, 4), (4, 4), (1, 1), (3, 2)]
        for index, (performance, potential) in enumerate(placements):
            employee = make_employee(f"Pessoa {index}")
            meeting = api.create_consensus_meeting(session, cycle.id, employee.id)
            api.complete_consensus_meeting(
                session, meeting.id, performance_score=performance, potential_score=potential
            )
        scheduled_only = make_employee("Sem Reunião")
        api.create_consensus_meeting(session, cycle.id, scheduled_only.id)

        rows = api.get_nine_box_data(session, cycle.id)
        assert [r["nine_box_position"] for r in rows] == [
            "Estrela",
            "Estrela",
            "Questionável",
            "Eficaz",
        ]
        assert rows[0]["cell"] == 9

        grid = api.nine_box_grid(session, cycle.id)
        assert list(grid.index) == ["high", "medium", "low"]
        assert list(grid.columns) == ["low", "medium", "high"]
        assert grid.loc["high", "high"] == 2
        assert grid.loc["low", "low"] == 1
        assert grid.loc["medium", "low"] == 1
        assert int(grid.to_numpy().sum()) == 4

    def test_empty_grid(self, session, make_cycle):
        cycle = make_cycle()
        grid = api.nine_box_grid(session, cycle.id)
        assert grid.shape == (3, 3)
        assert int(grid.to_numpy().sum()) == 0


class TestDashboard:
    def test_progress_per_employee(self, session, make_employee, make_cycle):
        cycle = make_cycle()
        done = make_employee("Ana Souza")
        pending = make_employee("Bruno Lima")
        api.create_self_evaluation(session, cycle.id, done.id, COMPETENCIES)
        meeting = api.create_consensus_meeting(session, cycle.id, done.id)
        api.create_consensus_meeting(session, cycle.id, pending.id)
        api.complete_consensus_meeting(session, meeting.id, performance_score=3, potential_score=2)

        rows = {r["employee_name"]: r for r in api.get_cycle_dashboard(session, cycle.id)}
        assert rows["Ana Souza"]["self_evaluation_status"] == "completed"
        assert rows["Ana Souza"]["self_evaluation_score"] == 3.313
        assert rows["Ana Souza"]["leader_evaluation_status"] == "pending"
        assert rows["Ana Souza"]["consensus_performance_score"] == 3
        assert rows["Bruno Lima"]["self_evaluation_status"] == "pending"
        assert rows["Bruno Lima"]["consensus_status"] == "scheduled"
        assert rows["Bruno Lima"]["consensus_performance_score"] is None


class TestPdi:
    def test_save_replaces_active_plan(self, session, make_employee):
        employee = make_employee()
        first = api.save_pdi(session, employee.id, goals=["Aprender FastAPI"])
        second = api.save_pdi(
            session,
            employee.id,
            goals=["Liderar projeto", "  "],
            actions=["Mentoria"],
            resources=["Curso"],
            timeline="6 meses",
        )
        assert first.status == "completed"
        assert second.status == "active"
        assert decode_list(second.goals) == ["Liderar projeto"]
        assert api.get_pdi(session, employee.id).id == second.id

    def test_goal_required(self, session, make_employee):
        employee = make_employee()
        with pytest.raises(ValidationError):
            api.save_pdi(session, employee.id, goals=["", "   "])

    def test_no_plan(self, session, make_employee):
        assert api.get_pdi(session, make_employee().id) is None

    def test_update(self, session, make_employee):
        employee = make_employee()
        plan = api.save_pdi(session, employee.id, goals=["Aprender FastAPI"])
        api.update_pdi(session, plan.id, actions=["Pair programming", ""], timeline="3 meses")
        serialized = api.serialize_pdi(plan)
        assert serialized["actions"] == ["Pair programming"]
        assert serialized["goals"] == ["Aprender FastAPI"]
        assert serialized["timeline"] == "3 meses"

    def test_update_rejects_unknown_fields(self, session, make_employee):
        plan = api.save_pdi(session, make_employee().id, goals=["Aprender FastAPI"])
        with pytest.raises(ValidationError) as excinfo:
            api.update_pdi(session, plan.id, tmeline="3 meses")
        assert "tmeline" in excinfo.value.message
        assert api.serialize_pdi(plan)["timeline"] is None

    def test_update_missing(self, session):
        with pytest.raises(DevelopmentPlanNotFoundError):
            api.update_pdi(session, 42, timeline="x")


class TestPreview:
    def test_preview_from_grouped(self):
        result = api.preview_scores(
            grouped={"technical": [4, 4], "behavioral": [4]},
            potential_indicators={"visaoSistemica": 4},
        )
        assert result["final_score"] == 4.0
        assert result["potential_score"] == 4.0
        assert result["nine_box_position"] == "Estrela"
        assert result["cell"] == 9

    def test_preview_without_potential(self):
        result = api.preview_scores(competencies=COMPETENCIES)
        assert result["final_score"] == 3.313
        assert result["nine_box_position"] == "Não classificado"
