"""Wire models for the project provisioning endpoint.

The wizard posts camelCase JSON; several keys still carry the names older
wizard builds used (``projectName``, ``clientId``, ``profileId``, ``due_date``),
so both spellings are accepted on input. Output models serialize camelCase.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, List, Optional

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def _parse_loose_date(value: Any) -> Any:
    # the wizard serializes JS Date objects as full ISO datetimes
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and len(value) > 10 and value[4] == "-" and value[7] == "-":
        return date.fromisoformat(value[:10])
    return value


def _stringify_reference(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, str):
        return value.strip() or None
    return value


LooseDate = Annotated[Optional[date], BeforeValidator(_parse_loose_date)]
Reference = Annotated[Optional[str], BeforeValidator(_stringify_reference)]


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


# -----------------------
# Blueprint (input)
# -----------------------

class TaskSpec(_WireModel):
    title: str = ""
    description: Optional[str] = None
    estimated_hours: Optional[Decimal] = Field(
        default=None, validation_alias=AliasChoices("estimatedHours", "estimated_hours")
    )
    priority: str = Field(default="medium", max_length=16)

    @field_validator("priority", mode="before")
    @classmethod
    def _null_priority(cls, value):
        return "medium" if value is None else value


class PhaseSpec(_WireModel):
    # wizard-local key, only used to link payments to phases
    id: Reference = None
    name: str = ""
    description: Optional[str] = None
    start_date: LooseDate = Field(default=None, validation_alias=AliasChoices("startDate", "start_date"))
    end_date: LooseDate = Field(default=None, validation_alias=AliasChoices("endDate", "end_date"))
    order_index: Optional[int] = Field(default=None, validation_alias=AliasChoices("orderIndex", "order_index"))
    tasks: List[TaskSpec] = Field(default_factory=list)

    @field_validator("tasks", mode="before")
    @classmethod
    def _none_is_empty(cls, value):
        return [] if value is None else value


class ProjectInfoSpec(_WireModel):
    client_id: Reference = Field(default=None, validation_alias=AliasChoices("clientId", "client_id"))
    name: str = Field(default="", validation_alias=AliasChoices("name", "projectName"))
    description: Optional[str] = None
    status: str = Field(default="planning", max_length=32)
    start_date: LooseDate = Field(default=None, validation_alias=AliasChoices("startDate", "start_date"))
    end_date: LooseDate = Field(default=None, validation_alias=AliasChoices("endDate", "end_date"))
    total_budget: Optional[Decimal] = Field(
        default=None, validation_alias=AliasChoices("totalBudget", "total_budget")
    )
    currency: str = "USD"

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value):
        return (value or "").strip() if isinstance(value, str) or value is None else value

    @field_validator("status", mode="before")
    @classmethod
    def _null_status(cls, value):
        return "planning" if value is None else value

    @field_validator("currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value):
        if value is None:
            return "USD"
        return value.strip().upper() if isinstance(value, str) else value


class TeamAssignmentSpec(_WireModel):
    profile_reference: Reference = Field(
        default=None, validation_alias=AliasChoices("profileReference", "profileId", "profile_id")
    )
    role: Optional[str] = None
    allocation_percent: int = Field(
        default=100, validation_alias=AliasChoices("allocationPercent", "allocation", "allocation_percent")
    )
    is_client_liaison: bool = Field(
        default=False, validation_alias=AliasChoices("isClientLiaison", "is_client_liaison")
    )


class PaymentSpec(_WireModel):
    name: str = ""
    amount: Optional[Decimal] = None
    due_date: LooseDate = Field(default=None, validation_alias=AliasChoices("dueDate", "due_date"))
    description: Optional[str] = None
    phase_id: Reference = Field(default=None, validation_alias=AliasChoices("phaseId", "phase_id"))


class BrandingSpec(_WireModel):
    primary_color: Optional[str] = Field(default=None, validation_alias=AliasChoices("primaryColor", "primary_color"))
    logo: Optional[str] = None
    welcome_message: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("welcomeMessage", "welcome_message")
    )


class PermissionsSpec(_WireModel):
    view_tasks: Optional[bool] = Field(default=None, validation_alias=AliasChoices("viewTasks", "view_tasks"))
    view_payments: Optional[bool] = Field(default=None, validation_alias=AliasChoices("viewPayments", "view_payments"))
    view_team: Optional[bool] = Field(default=None, validation_alias=AliasChoices("viewTeam", "view_team"))
    view_timeline: Optional[bool] = Field(default=None, validation_alias=AliasChoices("viewTimeline", "view_timeline"))


class NotificationsSpec(_WireModel):
    email_updates: Optional[bool] = Field(default=None, validation_alias=AliasChoices("emailUpdates", "email_updates"))
    deadline_reminders: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("deadlineReminders", "deadline_reminders")
    )
    payment_reminders: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("paymentReminders", "payment_reminders")
    )


class DashboardConfigSpec(_WireModel):
    widgets: Optional[List[str]] = None
    branding: Optional[BrandingSpec] = None
    permissions: Optional[PermissionsSpec] = None
    notifications: Optional[NotificationsSpec] = None


class ProjectBlueprint(_WireModel):
    client_reference: Reference = Field(
        default=None, validation_alias=AliasChoices("clientReference", "clientId", "client_reference")
    )
    project_info: ProjectInfoSpec = Field(
        default_factory=ProjectInfoSpec, validation_alias=AliasChoices("projectInfo", "project_info")
    )
    phases: List[PhaseSpec] = Field(default_factory=list)
    team_assignments: List[TeamAssignmentSpec] = Field(
        default_factory=list, validation_alias=AliasChoices("teamAssignments", "team_assignments")
    )
    payment_schedule: List[PaymentSpec] = Field(
        default_factory=list, validation_alias=AliasChoices("paymentSchedule", "payment_schedule")
    )
    dashboard_config: Optional[DashboardConfigSpec] = Field(
        default=None, validation_alias=AliasChoices("dashboardConfig", "dashboard_config")
    )

    @model_validator(mode="before")
    @classmethod
    def _lift_client_reference(cls, data):
        if not isinstance(data, dict):
            return data
        if any(data.get(k) for k in ("clientReference", "clientId", "client_reference")):
            return data
        info = data.get("projectInfo") or data.get("project_info")
        if isinstance(info, dict):
            client_id = info.get("clientId") or info.get("client_id")
            if client_id:
                data = dict(data)
                data["clientReference"] = client_id
        return data

    @field_validator("phases", "team_assignments", "payment_schedule", mode="before")
    @classmethod
    def _none_is_empty(cls, value):
        return [] if value is None else value

    @field_validator("project_info", mode="before")
    @classmethod
    def _none_is_default(cls, value):
        return {} if value is None else value


# -----------------------
# GeneratedProjectView (output)
# -----------------------

class _ViewModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ClientView(_ViewModel):
    id: str
    name: str
    company: Optional[str] = None


class PhaseView(_ViewModel):
    id: str
    name: str
    duration: int = 1


class TeamMemberView(_ViewModel):
    id: str
    name: Optional[str] = None
    role: Optional[str] = None


class PaymentView(_ViewModel):
    name: str
    amount: float
    due_date: Optional[date] = None


class GeneratedProjectView(_ViewModel):
    id: str
    name: str
    client: ClientView
    phases: List[PhaseView] = Field(default_factory=list)
    team_members: List[TeamMemberView] = Field(default_factory=list)
    payments: List[PaymentView] = Field(default_factory=list)
    dashboard_url: str
    total_budget: Optional[float] = None
    currency: str = "USD"
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: str

    def to_response(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
