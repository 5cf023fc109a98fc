# provisioning/errors.py
from typing import Any, Dict, List, Optional


class ProvisioningServiceError(Exception):
    """Base class for every failure the provisioning pipeline reports to its caller."""

    status_code = 500

    def to_response(self) -> Dict[str, Any]:
        return {"error": str(self)}


class AuthenticationError(ProvisioningServiceError):
    status_code = 401


class AuthorizationError(ProvisioningServiceError):
    status_code = 403


class ValidationError(ProvisioningServiceError):
    status_code = 400

    def __init__(self, violations: List[Dict[str, str]]):
        self.violations = list(violations)
        summary = "; ".join(f"{v['field']}: {v['message']}" for v in self.violations)
        super().__init__(f"Invalid project blueprint: {summary}" if summary else "Invalid project blueprint")

    def to_response(self) -> Dict[str, Any]:
        return {"error": str(self), "violations": self.violations}


class ProvisioningCancelled(Exception):
    """Raised at a step boundary when the run was cancelled or its deadline passed."""


class CompensationError(ProvisioningServiceError):
    """
    A compensating action failed. Never raised to the caller: it is logged and
    kept inside the CompensationOutcome of the triggering ProvisioningStepError.
    """

    def __init__(self, step_name: str, produced_ids: List[str], cause: BaseException, original_error: Optional[BaseException] = None):
        self.step_name = step_name
        self.produced_ids = list(produced_ids)
        self.cause = cause
        self.original_error = original_error
        super().__init__(f"Compensation of step '{step_name}' failed for ids {self.produced_ids}: {cause}")


class ProvisioningStepError(ProvisioningServiceError):
    status_code = 500

    def __init__(self, failed_step: str, cause: BaseException, compensation_outcome=None):
        self.failed_step = failed_step
        self.cause = cause
        self.compensation_outcome = compensation_outcome
        super().__init__(f"Provisioning step '{failed_step}' failed: {cause}")

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": str(self), "failedStep": self.failed_step}
        if self.compensation_outcome is not None:
            body["compensation"] = self.compensation_outcome.summary()
        return body


class AssemblyError(ProvisioningServiceError):
    """The post-commit read-back failed. Writes are kept; this is reported as a warning."""

    status_code = 500

    def __init__(self, project_id: str, cause: BaseException):
        self.project_id = project_id
        self.cause = cause
        super().__init__(f"Project {project_id} was created but could not be read back: {cause}")

    def to_response(self) -> Dict[str, Any]:
        return {"error": str(self), "projectId": self.project_id}
