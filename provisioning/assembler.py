# provisioning/assembler.py
import logging
from typing import Any, Dict, Optional

from provisioning import config
from provisioning.errors import AssemblyError
from provisioning.schemas import (
    ClientView,
    GeneratedProjectView,
    PaymentView,
    PhaseView,
    TeamMemberView,
)

logger = logging.getLogger("provisioning.assembler")


def _as_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def phase_duration_days(phase: Dict[str, Any]) -> int:
    start, end = phase.get("start_date"), phase.get("end_date")
    if start is None or end is None or end < start:
        return 1
    return (end - start).days + 1


class ResponseAssembler:
    """Re-reads a freshly provisioned project and projects it into a GeneratedProjectView."""

    def __init__(self, store, dashboard_url_prefix: str = config.DASHBOARD_URL_PREFIX):
        self.store = store
        self.dashboard_url_prefix = dashboard_url_prefix

    def assemble(self, project_id: str) -> GeneratedProjectView:
        try:
            return self._assemble(project_id)
        except AssemblyError:
            raise
        except Exception as e:
            logger.warning("[assembler] read-back of project %s failed: %s", project_id, e)
            raise AssemblyError(project_id, e) from e

    def _assemble(self, project_id: str) -> GeneratedProjectView:
        project = self.store.select_project(project_id)
        if project is None:
            raise AssemblyError(project_id, LookupError("project not found"))

        client = self.store.select_client(project["client_id"])
        if client is None:
            raise AssemblyError(project_id, LookupError(f"client {project['client_id']} not found"))

        phases = self.store.select_phases(project_id)
        members = self.store.select_project_members(project_id)
        payments = self.store.select_payment_schedules(project_id)

        team = []
        for m in members:
            profile = m.get("profile") or {}
            team.append(TeamMemberView(
                id=profile.get("id") or m["profile_id"],
                name=profile.get("full_name"),
                role=m.get("role") or profile.get("role"),
            ))

        return GeneratedProjectView(
            id=project["id"],
            name=project["name"],
            client=ClientView(id=client["id"], name=client["name"], company=client.get("company")),
            phases=[
                PhaseView(id=p["id"], name=p["name"], duration=phase_duration_days(p))
                for p in phases
            ],
            team_members=team,
            payments=[
                PaymentView(name=p["name"], amount=_as_float(p["amount"]) or 0.0, due_date=p.get("due_date"))
                for p in payments
            ],
            dashboard_url=f"{self.dashboard_url_prefix}?project={project['id']}",
            total_budget=_as_float(project.get("total_amount")),
            currency=project.get("currency") or "USD",
            start_date=project.get("start_date"),
            end_date=project.get("end_date"),
            status=project.get("status") or "planning",
        )
