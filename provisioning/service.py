# provisioning/service.py
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence

from sqlalchemy.orm import Session

from provisioning import config
from provisioning.assembler import ResponseAssembler
from provisioning.authorization import AuthorizationGate, SqlRoleResolver
from provisioning.errors import AssemblyError
from provisioning.resource_store import SqlResourceStore
from provisioning.saga import CancellationToken, ProvisioningContext, ProvisioningOrchestrator, Step
from provisioning.schemas import GeneratedProjectView
from provisioning.steps import build_provisioning_steps
from provisioning.validation import ensure_valid, parse_blueprint

logger = logging.getLogger("provisioning.service")


@dataclass
class ProvisioningResult:
    project_id: str
    view: Optional[GeneratedProjectView] = None
    warnings: List[str] = field(default_factory=list)
    assembly_error: Optional[AssemblyError] = None


class ProjectProvisioningService:
    """
    One wizard submission end to end:
    authorization gate -> blueprint validation -> saga -> read-back.

    Gate and validation failures raise before any store call. A failed step
    raises ProvisioningStepError after the saga has compensated. A failed
    read-back does not undo anything: the result carries the project id and
    the AssemblyError as a warning.
    """

    def __init__(
        self,
        gate: AuthorizationGate,
        store,
        assembler: Optional[ResponseAssembler] = None,
        steps: Optional[Sequence[Step]] = None,
        timeout_seconds: Optional[float] = config.PROVISIONING_TIMEOUT_SECONDS,
    ):
        self.gate = gate
        self.store = store
        self.assembler = assembler or ResponseAssembler(store)
        self.orchestrator = ProvisioningOrchestrator(steps if steps is not None else build_provisioning_steps())
        self.timeout_seconds = timeout_seconds

    def provision(
        self,
        authorization_header: Optional[str],
        wizard_data: Any,
        cancellation: Optional[CancellationToken] = None,
    ) -> ProvisioningResult:
        role = self.gate.admit(authorization_header)
        return self.provision_admitted(role, wizard_data, cancellation)

    def provision_admitted(
        self,
        role: str,
        wizard_data: Any,
        cancellation: Optional[CancellationToken] = None,
    ) -> ProvisioningResult:
        """Provision for a caller the gate has already admitted with ``role``."""
        blueprint = ensure_valid(parse_blueprint(wizard_data))

        logger.info(
            "[service] provisioning '%s' for client %s (role=%s, phases=%d, members=%d, payments=%d)",
            blueprint.project_info.name,
            blueprint.client_reference,
            role,
            len(blueprint.phases),
            len(blueprint.team_assignments),
            len(blueprint.payment_schedule),
        )

        ctx = ProvisioningContext(
            blueprint=blueprint,
            store=self.store,
            cancellation=cancellation or CancellationToken(self.timeout_seconds),
        )
        self.orchestrator.run(ctx)
        project_id = ctx.project_id

        try:
            view = self.assembler.assemble(project_id)
        except AssemblyError as e:
            logger.warning("[service] project %s provisioned, response assembly failed: %s", project_id, e)
            return ProvisioningResult(project_id=project_id, warnings=[str(e)], assembly_error=e)

        logger.info("Project generated successfully: %s", project_id)
        return ProvisioningResult(project_id=project_id, view=view)


def build_service(session_factory: Callable[[], Session]) -> ProjectProvisioningService:
    store = SqlResourceStore(session_factory)
    gate = AuthorizationGate(SqlRoleResolver(session_factory), config.ALLOWED_ROLES)
    return ProjectProvisioningService(gate, store)
