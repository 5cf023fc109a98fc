import copy
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.pool import StaticPool

from provisioning.authorization import AuthorizationGate, SqlRoleResolver, hash_token
from provisioning.db_connection import build_db_session_factory, get_db_engine
from provisioning.entities import (
    AccessToken,
    Client,
    DashboardConfig,
    PaymentSchedule,
    Phase,
    Profile,
    Project,
    ProjectMember,
    Task,
)
from provisioning.resource_store import SqlResourceStore
from provisioning.service import ProjectProvisioningService

ADMIN = "Bearer admin-token"
TEAM = "Bearer team-token"
CLIENT = "Bearer client-token"
EXPIRED = "Bearer expired-token"
REVOKED = "Bearer revoked-token"

RESOURCE_MODELS = {
    "projects": Project,
    "phases": Phase,
    "tasks": Task,
    "project_members": ProjectMember,
    "payment_schedules": PaymentSchedule,
    "dashboard_configs": DashboardConfig,
}


class FlakyStore(SqlResourceStore):
    """
    SqlResourceStore that records every public call and can be told to fail
    the n-th call of a given method: ``store.fail_on["insert_tasks"] = 2``.
    """

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.fail_on = {}
        self.calls = []
        self._counts = {}

    def __getattribute__(self, name):
        attr = super().__getattribute__(name)
        if not name.startswith(("insert_", "select_", "delete_")) or not callable(attr):
            return attr

        def wrapper(*args, **kwargs):
            calls = super(FlakyStore, self).__getattribute__("calls")
            counts = super(FlakyStore, self).__getattribute__("_counts")
            fail_on = super(FlakyStore, self).__getattribute__("fail_on")
            calls.append(name)
            counts[name] = counts.get(name, 0) + 1
            if fail_on.get(name) == counts[name]:
                raise RuntimeError(f"injected failure in {name}")
            return attr(*args, **kwargs)

        return wrapper

    @property
    def writes(self):
        return [c for c in self.calls if c.startswith(("insert_", "delete_"))]


@pytest.fixture
def session_factory():
    engine = get_db_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    factory = build_db_session_factory(engine)
    _seed(factory)
    yield factory
    engine.dispose()


def _seed(factory):
    now = datetime.now(timezone.utc)
    session = factory()
    try:
        session.add(Client(id="client-1", name="Ada Lovelace", company="Analytical Engines Ltd"))
        session.add_all([
            Profile(id="profile-admin", user_id="u-admin", full_name="Agency Admin", role="admin"),
            Profile(id="profile-team", user_id="u-team", full_name="Tess Team", role="team_member"),
            Profile(id="profile-client", user_id="u-client", full_name="Ada Lovelace", role="client"),
            Profile(id="profile-dev", user_id="u-dev", full_name="Dev Eloper", role="team_member"),
        ])
        session.add_all([
            AccessToken(token_hash=hash_token("admin-token"), user_id="u-admin"),
            AccessToken(token_hash=hash_token("team-token"), user_id="u-team"),
            AccessToken(token_hash=hash_token("client-token"), user_id="u-client"),
            AccessToken(token_hash=hash_token("expired-token"), user_id="u-admin", expires_at=now - timedelta(hours=1)),
            AccessToken(token_hash=hash_token("revoked-token"), user_id="u-admin", revoked=True),
        ])
        session.commit()
    finally:
        session.close()


@pytest.fixture
def store(session_factory):
    return FlakyStore(session_factory)


@pytest.fixture
def gate(session_factory):
    return AuthorizationGate(SqlRoleResolver(session_factory), ("admin", "team_member"))


@pytest.fixture
def service(gate, store):
    return ProjectProvisioningService(gate, store, timeout_seconds=None)


@pytest.fixture
def count_rows(session_factory):
    def _count():
        session = session_factory()
        try:
            return {name: session.query(model).count() for name, model in RESOURCE_MODELS.items()}
        finally:
            session.close()

    return _count


SCENARIO_A = {
    "clientReference": "client-1",
    "projectInfo": {
        "name": "Website Relaunch",
        "description": "New marketing site",
        "startDate": "2025-01-06T00:00:00.000Z",
        "endDate": "2025-03-28",
        "totalBudget": 10000,
        "currency": "EUR",
    },
    "phases": [
        {
            "id": "ph-discovery",
            "name": "Discovery",
            "description": "Research and scoping",
            "startDate": "2025-01-06",
            "endDate": "2025-01-17",
            "tasks": [
                {"title": "Kickoff workshop", "description": "", "estimatedHours": 4, "priority": "high"},
                {"title": "Stakeholder interviews", "description": "", "estimatedHours": 12, "priority": "medium"},
            ],
        },
        {"id": "ph-build", "name": "Build", "description": "Implementation", "tasks": []},
    ],
    "teamAssignments": [
        {"profileId": "profile-dev", "role": "Lead Developer", "allocation": 80, "isClientLiaison": True},
    ],
    "paymentSchedule": [
        {"name": "Deposit", "amount": 4000, "dueDate": "2025-01-06", "description": "", "phaseId": "ph-discovery"},
        {"name": "Final", "amount": 6000, "dueDate": "2025-03-28", "description": ""},
    ],
    "dashboardConfig": {
        "widgets": ["progress", "tasks"],
        "branding": {"primaryColor": "#111111"},
    },
}


@pytest.fixture
def scenario_a():
    return copy.deepcopy(SCENARIO_A)
