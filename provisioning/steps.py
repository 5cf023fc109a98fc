# provisioning/steps.py
import logging
from decimal import Decimal
from typing import List

from provisioning.dashboard_config import merge_with_defaults
from provisioning.saga import ProvisioningContext, Step

logger = logging.getLogger("provisioning.steps")

CREATE_PROJECT = "CreateProject"
CREATE_PHASES = "CreatePhases"
CREATE_TASKS = "CreateTasks"
CREATE_TEAM_ASSIGNMENTS = "CreateTeamAssignments"
CREATE_PAYMENT_SCHEDULE = "CreatePaymentSchedule"
CREATE_DASHBOARD_CONFIG = "CreateDashboardConfig"


# -----------------------
# 1. Project
# -----------------------

def _create_project(ctx: ProvisioningContext, produced: List[str]) -> List[str]:
    blueprint = ctx.blueprint
    info = blueprint.project_info

    if ctx.store.select_client(blueprint.client_reference) is None:
        raise LookupError(f"Client not found: {blueprint.client_reference}")

    project_id = ctx.store.insert_project({
        "client_id": blueprint.client_reference,
        "name": info.name,
        "description": info.description,
        "status": info.status or "planning",
        "start_date": info.start_date,
        "end_date": info.end_date,
        "total_amount": info.total_budget,
        "currency": info.currency or "USD",
        "progress_percentage": 0,
        "monthly_savings": 0,
        "annual_roi_percentage": 0,
    })
    ctx.project_id = project_id
    logger.info("[steps] project %s created for client %s", project_id, blueprint.client_reference)
    return [project_id]


def _delete_project(ctx: ProvisioningContext, ids: List[str]) -> None:
    ctx.store.delete_projects(ids)


# -----------------------
# 2. Phases
# -----------------------

def _create_phases(ctx: ProvisioningContext, produced: List[str]) -> List[str]:
    info = ctx.blueprint.project_info
    rows = [
        {
            "project_id": ctx.project_id,
            "name": phase.name,
            "description": phase.description,
            # position in the blueprint, never the client-sent orderIndex
            "order_index": index,
            "start_date": phase.start_date or info.start_date,
            "end_date": phase.end_date or info.end_date,
            "status": "not_started",
            "progress_percentage": 0,
        }
        for index, phase in enumerate(ctx.blueprint.phases)
    ]
    ids = ctx.store.insert_phases(rows)
    produced.extend(ids)
    if len(ids) != len(rows):
        raise RuntimeError(f"Expected {len(rows)} phase ids, store returned {len(ids)}")
    ctx.phase_ids = list(ids)
    return ids


def _delete_phases(ctx: ProvisioningContext, ids: List[str]) -> None:
    # cascades to the tasks owned by these phases
    ctx.store.delete_phases(ids)


# -----------------------
# 3. Tasks
# -----------------------

def _create_tasks(ctx: ProvisioningContext, produced: List[str]) -> List[str]:
    for phase_id, phase in zip(ctx.phase_ids, ctx.blueprint.phases):
        if not phase.tasks:
            continue
        rows = [
            {
                "phase_id": phase_id,
                "title": task.title,
                "description": task.description,
                "estimated_hours": task.estimated_hours if task.estimated_hours is not None else Decimal(0),
                "priority": task.priority or "medium",
                "status": "todo",
            }
            for task in phase.tasks
        ]
        produced.extend(ctx.store.insert_tasks(rows))
    return produced


def _delete_tasks(ctx: ProvisioningContext, ids: List[str]) -> None:
    ctx.store.delete_tasks(ids)


# -----------------------
# 4. Team assignments
# -----------------------

def _create_team_assignments(ctx: ProvisioningContext, produced: List[str]) -> List[str]:
    rows = [
        {
            "project_id": ctx.project_id,
            "profile_id": member.profile_reference,
            "role": member.role,
            "allocation_percent": member.allocation_percent,
            "is_client_liaison": member.is_client_liaison,
        }
        for member in ctx.blueprint.team_assignments
    ]
    return ctx.store.insert_project_members(rows)


def _delete_team_assignments(ctx: ProvisioningContext, ids: List[str]) -> None:
    ctx.store.delete_project_members(ids)


# -----------------------
# 5. Payment schedule
# -----------------------

def _create_payment_schedule(ctx: ProvisioningContext, produced: List[str]) -> List[str]:
    phase_by_key = {
        phase.id: phase_id
        for phase_id, phase in zip(ctx.phase_ids, ctx.blueprint.phases)
        if phase.id
    }
    rows = [
        {
            "project_id": ctx.project_id,
            "phase_id": phase_by_key.get(payment.phase_id) if payment.phase_id else None,
            "name": payment.name,
            "amount": payment.amount,
            "due_date": payment.due_date,
            "description": payment.description,
            "status": "pending",
        }
        for payment in ctx.blueprint.payment_schedule
    ]
    return ctx.store.insert_payment_schedules(rows)


def _delete_payment_schedule(ctx: ProvisioningContext, ids: List[str]) -> None:
    ctx.store.delete_payment_schedules(ids)


# -----------------------
# 6. Dashboard config
# -----------------------

def _create_dashboard_config(ctx: ProvisioningContext, produced: List[str]) -> List[str]:
    values = merge_with_defaults(ctx.blueprint.dashboard_config)
    values["project_id"] = ctx.project_id
    return [ctx.store.insert_dashboard_config(values)]


def _delete_dashboard_config(ctx: ProvisioningContext, ids: List[str]) -> None:
    ctx.store.delete_dashboard_configs(ids)


def build_provisioning_steps() -> List[Step]:
    """The fixed step order; each step depends on ids produced by the ones before it."""
    return [
        Step(CREATE_PROJECT, _create_project, _delete_project),
        Step(CREATE_PHASES, _create_phases, _delete_phases),
        Step(CREATE_TASKS, _create_tasks, _delete_tasks),
        Step(CREATE_TEAM_ASSIGNMENTS, _create_team_assignments, _delete_team_assignments),
        Step(CREATE_PAYMENT_SCHEDULE, _create_payment_schedule, _delete_payment_schedule),
        Step(CREATE_DASHBOARD_CONFIG, _create_dashboard_config, _delete_dashboard_config),
    ]
