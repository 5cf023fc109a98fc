# provisioning/validation.py
import logging
import re
from typing import Any, Dict, List, Sequence

import pydantic

from provisioning.errors import ValidationError
from provisioning.schemas import ProjectBlueprint

logger = logging.getLogger("provisioning.validation")

Violation = Dict[str, str]

CURRENCY_CODE = re.compile(r"[A-Za-z]{3}")


def _violation(field: str, message: str) -> Violation:
    return {"field": field, "message": message}


def field_path(loc: Sequence[Any]) -> str:
    """('phases', 0, 'tasks', 1, 'title') -> 'phases[0].tasks[1].title'"""
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path


def parse_blueprint(payload: Any) -> ProjectBlueprint:
    """Build a ProjectBlueprint from the raw ``wizardData`` object; type errors become a ValidationError."""
    if not isinstance(payload, dict):
        raise ValidationError([_violation("wizardData", "must be a JSON object")])
    try:
        return ProjectBlueprint.model_validate(payload)
    except pydantic.ValidationError as e:
        violations = [
            _violation(field_path(err["loc"]) or "wizardData", err["msg"])
            for err in e.errors()
        ]
        raise ValidationError(violations) from e


def validate(blueprint: ProjectBlueprint) -> List[Violation]:
    """
    Structural checks on a blueprint. Returns every violation found, in
    document order; an empty list means the blueprint may be provisioned.
    """
    violations: List[Violation] = []
    info = blueprint.project_info

    if not blueprint.client_reference:
        violations.append(_violation("clientReference", "Client must be selected"))
    if not info.name:
        violations.append(_violation("projectInfo.name", "Project name is required"))
    if info.total_budget is None or info.total_budget <= 0:
        violations.append(_violation("projectInfo.totalBudget", "Total budget must be greater than 0"))
    if info.start_date and info.end_date and info.end_date < info.start_date:
        violations.append(_violation("projectInfo.endDate", "End date must not be before start date"))
    if not CURRENCY_CODE.fullmatch(info.currency):
        violations.append(_violation("projectInfo.currency", "Currency must be a 3-letter ISO code"))

    if not blueprint.phases:
        violations.append(_violation("phases", "At least one phase is required"))

    phase_keys = set()
    for i, phase in enumerate(blueprint.phases):
        if not phase.name.strip():
            violations.append(_violation(f"phases[{i}].name", "Phase name is required"))
        if phase.id:
            # payments link by this key, so it must pick out exactly one phase
            if phase.id in phase_keys:
                violations.append(_violation(f"phases[{i}].id", f"Duplicate phase key '{phase.id}'"))
            phase_keys.add(phase.id)
        for j, task in enumerate(phase.tasks):
            if not task.title.strip():
                violations.append(_violation(f"phases[{i}].tasks[{j}].title", "Task title is required"))
            if task.estimated_hours is not None and task.estimated_hours < 0:
                violations.append(
                    _violation(f"phases[{i}].tasks[{j}].estimatedHours", "Estimated hours must not be negative")
                )

    for i, member in enumerate(blueprint.team_assignments):
        if not member.profile_reference:
            violations.append(_violation(f"teamAssignments[{i}].profileReference", "Team member is required"))
        if not 0 <= member.allocation_percent <= 100:
            violations.append(
                _violation(f"teamAssignments[{i}].allocationPercent", "Allocation must be between 0 and 100")
            )

    for i, payment in enumerate(blueprint.payment_schedule):
        if not payment.name.strip():
            violations.append(_violation(f"paymentSchedule[{i}].name", "Payment name is required"))
        if payment.amount is None or payment.amount < 0:
            violations.append(_violation(f"paymentSchedule[{i}].amount", "Payment amount must be 0 or more"))
        if payment.phase_id and payment.phase_id not in phase_keys:
            violations.append(
                _violation(f"paymentSchedule[{i}].phaseId", f"Unknown phase '{payment.phase_id}'")
            )

    liaisons = sum(1 for m in blueprint.team_assignments if m.is_client_liaison)
    if liaisons > 1:
        # soft invariant, reported but not enforced
        logger.warning("[validation] blueprint names %d client liaisons", liaisons)

    return violations


def ensure_valid(blueprint: ProjectBlueprint) -> ProjectBlueprint:
    violations = validate(blueprint)
    if violations:
        logger.info("[validation] rejected blueprint with %d violation(s)", len(violations))
        raise ValidationError(violations)
    return blueprint
