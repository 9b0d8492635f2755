import pytest

from talentgrid.application import api
from talentgrid.infrastructure.exceptions import (
    BulkValidationError,
    CycleClosedError,
    MultipleValidationError,
)
from talentgrid.infrastructure.models import (
    DevelopmentPlanORM,
    EvaluationCompetencyORM,
    LeaderEvaluationORM,
    SelfEvaluationORM,
)
from talentgrid.infrastructure.repositories import ToolkitRepo, decode_list


def count(session, model):
    return session.query(model).count()


def test_invalid_batch_writes_nothing(session, make_employee, make_cycle):
    cycle = make_cycle()
    people = [make_employee(f"Pessoa {i}") for i in range(3)]
    records = [
        {"userId": people[0].id, "selfEvaluation": {"technical": 4}},
        {"userId": people[1].id, "selfEvaluation": {"technical": 6}},
        {"userId": people[2].id, "toolkit": {"Foco": 3}},
    ]

    with pytest.raises(BulkValidationError) as excinfo:
        api.bulk_create_evaluations(session, cycle.id, records)

    assert excinfo.value.errors == ["Autoavaliação: technical deve estar entre 1 e 5"]
    assert count(session, SelfEvaluationORM) == 0
    assert count(session, EvaluationCompetencyORM) == 0


def test_incomplete_records_are_skipped(session, make_employee, make_cycle):
    cycle = make_cycle()
    employee = make_employee()
    records = [
        {"userId": employee.id, "selfEvaluation": {"technical": None}},
        {"userId": employee.id, "pdi": {"shortTermGoals": " "}},
        {"userId": employee.id, "selfEvaluation": {"technical": 4, "behavioral": 3}},
    ]

    result = api.bulk_create_evaluations(session, cycle.id, records)

    assert (result.success, result.skipped, result.errors) == (1, 2, [])
    evaluation = session.query(SelfEvaluationORM).one()
    assert evaluation.technical_score == 4.0
    assert evaluation.behavioral_score == 3.0
    assert evaluation.deliveries_score == 0.0
    # (4*.5 + 3*.3) / .8
    assert evaluation.final_score == 3.625


def test_failed_record_does_not_stop_the_batch(session, make_employee, make_cycle):
    cycle = make_cycle()
    employee = make_employee()
    records = [
        {"userId": 999, "selfEvaluation": {"technical": 4}},
        {"userId": employee.id, "selfEvaluation": {"technical": 2}},
    ]

    result = api.bulk_create_evaluations(session, cycle.id, records)

    assert result.success == 1
    assert result.errors == ["Erro ao processar usuário 999: Employee with ID 999 not found"]
    assert session.query(SelfEvaluationORM).one().employee_id == employee.id


def test_failed_record_rolls_back_only_its_own_writes(session, make_employee, make_cycle):
    cycle = make_cycle()
    broken = make_employee("Ana Souza")
    fine = make_employee("Bruno Lima")
    records = [
        # Leader section references a missing evaluator, so the whole record fails
        {
            "userId": broken.id,
            "selfEvaluation": {"technical": 4},
            "leaderEvaluation": {"technical": 3},
        },
        {"userId": fine.id, "selfEvaluation": {"technical": 3}},
    ]

    result = api.bulk_create_evaluations(session, cycle.id, records, created_by=999)

    assert result.success == 1
    assert len(result.errors) == 1
    assert result.errors[0].startswith(f"Erro ao processar usuário {broken.id}: ")
    assert [e.employee_id for e in session.query(SelfEvaluationORM).all()] == [fine.id]
    assert count(session, LeaderEvaluationORM) == 0


def test_leader_section_with_potential(session, make_employee, make_cycle):
    cycle = make_cycle()
    employee = make_employee()
    master = make_employee("Carla Dias")
    records = [
        {
            "userId": employee.id,
            "leaderEvaluation": {"technical": 5, "deliveries": "4", "potential": 4},
        }
    ]

    result = api.bulk_create_evaluations(session, cycle.id, records, created_by=master.id)

    assert result.success == 1
    evaluation = session.query(LeaderEvaluationORM).one()
    assert evaluation.evaluator_id == master.id
    assert evaluation.potential_score == 4.0
    # (5*.5 + 4*.2) / .7
    assert evaluation.final_score == 4.714


def test_nested_category_scores(session, make_employee, make_cycle):
    cycle = make_cycle()
    employee = make_employee()
    records = [
        {
            "userId": employee.id,
            "selfEvaluation": {"technical": {"Python": 4, "SQL": 2}, "behavioral": {"x": None}},
        }
    ]

    api.bulk_create_evaluations(session, cycle.id, records)

    evaluation = session.query(SelfEvaluationORM).one()
    assert evaluation.technical_score == 3.0
    assert evaluation.final_score == 3.0


def test_reupload_updates_existing_rows(session, make_employee, make_cycle):
    cycle = make_cycle()
    employee = make_employee()
    first = [
        {
            "userId": employee.id,
            "selfEvaluation": {"technical": 2},
            "toolkit": {"Comunicação": 3, "Foco": None},
            "pdi": {"shortTermGoals": "Aprender SQL", "developmentActions": "Curso"},
        }
    ]
    second = [
        {
            "userId": employee.id,
            "selfEvaluation": {"technical": 4},
            "toolkit": {"Comunicação": 5},
            "pdi": {"shortTermGoals": "Aprender SQL", "longTermGoals": "Liderar time"},
        }
    ]

    api.bulk_create_evaluations(session, cycle.id, first)
    api.bulk_create_evaluations(session, cycle.id, second)

    assert session.query(SelfEvaluationORM).one().technical_score == 4.0
    (toolkit,) = ToolkitRepo(session).list_for_employee(employee.id, cycle.id)
    assert (toolkit.criterion_name, toolkit.category, toolkit.score) == (
        "Comunicação",
        "behavioral",
        5.0,
    )
    plan = session.query(DevelopmentPlanORM).one()
    assert plan.status == "active"
    assert decode_list(plan.goals) == ["Aprender SQL", "Liderar time"]
    assert decode_list(plan.actions) == []


def test_closed_cycle(session, make_employee, make_cycle):
    cycle = make_cycle(status="closed")
    employee = make_employee()
    with pytest.raises(CycleClosedError):
        api.bulk_create_evaluations(
            session, cycle.id, [{"userId": employee.id, "toolkit": {"Foco": 3}}]
        )


def test_record_without_user_id(session, make_cycle):
    cycle = make_cycle()
    with pytest.raises(MultipleValidationError):
        api.bulk_create_evaluations(session, cycle.id, [{"toolkit": {"Foco": 3}}])
    assert count(session, EvaluationCompetencyORM) == 0


def test_validate_bulk_evaluations_uses_configured_range(monkeypatch):
    from talentgrid.infrastructure.config import reset_settings

    monkeypatch.setenv("SCORING_BULK_MAX_SCORE", "4")
    reset_settings()
    result = api.validate_bulk_evaluations([{"userId": 1, "toolkit": {"Foco": 5}}])
    assert result.errors == ["Toolkit: Foco deve estar entre 1 e 4"]


def test_nested_toolkit_entries_use_dotted_names(session, make_employee, make_cycle):
    cycle = make_cycle()
    employee = make_employee()
    records = [{"userId": employee.id, "toolkit": {"Foco": {"Prioridades": 3}, "Ritmo": 4}}]

    result = api.bulk_create_evaluations(session, cycle.id, records)

    assert (result.success, result.errors) == (1, [])
    rows = ToolkitRepo(session).list_for_employee(employee.id, cycle.id)
    assert sorted((r.criterion_name, r.score) for r in rows) == [
        ("Foco.Prioridades", 3.0),
        ("Ritmo", 4.0),
    ]
