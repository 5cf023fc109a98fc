from datetime import date

import pytest

from provisioning.errors import ValidationError
from provisioning.validation import ensure_valid, field_path, parse_blueprint, validate


def _fields(violations):
    return [v["field"] for v in violations]


def test_valid_blueprint_has_no_violations(scenario_a):
    assert validate(parse_blueprint(scenario_a)) == []


def test_empty_blueprint_collects_every_required_violation():
    violations = validate(parse_blueprint({}))

    assert _fields(violations) == [
        "clientReference",
        "projectInfo.name",
        "projectInfo.totalBudget",
        "phases",
    ]


def test_validation_is_deterministic():
    blueprint = parse_blueprint({
        "projectInfo": {"name": "  ", "totalBudget": -5},
        "phases": [{"name": "", "tasks": [{"title": ""}]}],
        "paymentSchedule": [{"name": "Deposit", "amount": 10, "phaseId": "nope"}],
    })

    first = validate(blueprint)
    second = validate(blueprint)

    assert first == second
    assert _fields(first) == [
        "clientReference",
        "projectInfo.name",
        "projectInfo.totalBudget",
        "phases[0].name",
        "phases[0].tasks[0].title",
        "paymentSchedule[0].phaseId",
    ]


@pytest.mark.parametrize("budget", [0, -1, None])
def test_budget_must_be_positive(scenario_a, budget):
    scenario_a["projectInfo"]["totalBudget"] = budget

    assert _fields(validate(parse_blueprint(scenario_a))) == ["projectInfo.totalBudget"]


def test_phases_are_required(scenario_a):
    scenario_a["phases"] = []
    scenario_a["paymentSchedule"] = []

    assert _fields(validate(parse_blueprint(scenario_a))) == ["phases"]


def test_client_reference_is_lifted_from_project_info(scenario_a):
    del scenario_a["clientReference"]
    scenario_a["projectInfo"]["clientId"] = "client-1"

    blueprint = parse_blueprint(scenario_a)

    assert blueprint.client_reference == "client-1"
    assert validate(blueprint) == []


def test_wizard_field_names_are_accepted(scenario_a):
    scenario_a["projectInfo"]["projectName"] = scenario_a["projectInfo"].pop("name")

    blueprint = parse_blueprint(scenario_a)

    assert blueprint.project_info.name == "Website Relaunch"
    assert blueprint.team_assignments[0].profile_reference == "profile-dev"
    assert blueprint.team_assignments[0].allocation_percent == 80
    # ISO datetimes from the wizard keep only their date part
    assert blueprint.project_info.start_date == date(2025, 1, 6)


def test_allocation_out_of_range_is_reported(scenario_a):
    scenario_a["teamAssignments"][0]["allocation"] = 150

    assert _fields(validate(parse_blueprint(scenario_a))) == ["teamAssignments[0].allocationPercent"]


def test_several_client_liaisons_are_not_a_violation(scenario_a):
    scenario_a["teamAssignments"].append(
        {"profileId": "profile-team", "role": "PM", "allocation": 20, "isClientLiaison": True}
    )

    assert validate(parse_blueprint(scenario_a)) == []


def test_type_errors_become_validation_error(scenario_a):
    scenario_a["projectInfo"]["totalBudget"] = "lots"

    with pytest.raises(ValidationError) as excinfo:
        parse_blueprint(scenario_a)

    assert any("totalBudget" in v["field"] for v in excinfo.value.violations)


def test_non_object_payload_is_rejected():
    with pytest.raises(ValidationError) as excinfo:
        parse_blueprint(["not", "an", "object"])

    assert _fields(excinfo.value.violations) == ["wizardData"]


def test_ensure_valid_raises_with_all_violations():
    with pytest.raises(ValidationError) as excinfo:
        ensure_valid(parse_blueprint({"projectInfo": {"name": "X"}}))

    assert _fields(excinfo.value.violations) == ["clientReference", "projectInfo.totalBudget", "phases"]
    assert excinfo.value.to_response()["violations"] == excinfo.value.violations


def test_duplicate_phase_keys_are_reported(scenario_a):
    scenario_a["phases"][1]["id"] = "ph-discovery"

    violations = validate(parse_blueprint(scenario_a))

    assert _fields(violations) == ["phases[1].id"]
    assert "ph-discovery" in violations[0]["message"]


def test_phases_without_keys_are_not_duplicates(scenario_a):
    for phase in scenario_a["phases"]:
        del phase["id"]
    del scenario_a["paymentSchedule"][0]["phaseId"]

    assert validate(parse_blueprint(scenario_a)) == []


@pytest.mark.parametrize("currency", ["EURO", "E", "€€€", ""])
def test_currency_must_be_a_three_letter_code(scenario_a, currency):
    scenario_a["projectInfo"]["currency"] = currency

    assert _fields(validate(parse_blueprint(scenario_a))) == ["projectInfo.currency"]


def test_currency_is_normalized_to_upper_case(scenario_a):
    scenario_a["projectInfo"]["currency"] = " eur "

    blueprint = parse_blueprint(scenario_a)

    assert blueprint.project_info.currency == "EUR"
    assert validate(blueprint) == []


def test_null_defaults_behave_like_absent_fields(scenario_a):
    scenario_a["projectInfo"]["currency"] = None
    scenario_a["projectInfo"]["status"] = None
    scenario_a["phases"][0]["tasks"][0]["priority"] = None

    blueprint = parse_blueprint(scenario_a)

    assert blueprint.project_info.currency == "USD"
    assert blueprint.project_info.status == "planning"
    assert blueprint.phases[0].tasks[0].priority == "medium"
    assert validate(blueprint) == []


def test_parse_errors_use_the_same_field_paths_as_validation(scenario_a):
    scenario_a["phases"][0]["tasks"][1]["priority"] = "x" * 40

    with pytest.raises(ValidationError) as excinfo:
        parse_blueprint(scenario_a)

    assert _fields(excinfo.value.violations) == ["phases[0].tasks[1].priority"]


def test_field_path_formats_list_indexes():
    assert field_path(("phases", 0, "tasks", 1, "title")) == "phases[0].tasks[1].title"
    assert field_path(("projectInfo", "totalBudget")) == "projectInfo.totalBudget"
    assert field_path(()) == ""
