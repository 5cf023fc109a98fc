from provisioning.dashboard_config import (
    DEFAULT_BRANDING,
    DEFAULT_NOTIFICATIONS,
    DEFAULT_PERMISSIONS,
    DEFAULT_WIDGETS,
    merge_with_defaults,
)
from provisioning.schemas import DashboardConfigSpec


def _spec(data):
    return DashboardConfigSpec.model_validate(data)


def test_missing_config_yields_all_defaults():
    merged = merge_with_defaults(None)

    assert merged == {
        "widgets": DEFAULT_WIDGETS,
        "branding": DEFAULT_BRANDING,
        "permissions": DEFAULT_PERMISSIONS,
        "notifications": DEFAULT_NOTIFICATIONS,
    }


def test_omitted_sub_object_falls_back_to_defaults():
    merged = merge_with_defaults(_spec({
        "widgets": ["progress"],
        "branding": {"primaryColor": "#000000"},
        "permissions": {"viewPayments": False},
    }))

    assert merged["notifications"] == {
        "emailUpdates": True,
        "deadlineReminders": True,
        "paymentReminders": True,
    }
    assert merged["branding"] == {
        "primaryColor": "#000000",
        "welcomeMessage": "Welcome to your project dashboard",
    }
    assert merged["permissions"] == {
        "viewTasks": True,
        "viewPayments": False,
        "viewTeam": True,
        "viewTimeline": True,
    }
    assert merged["widgets"] == ["progress"]


def test_supplied_widget_list_replaces_defaults_and_is_deduplicated():
    assert merge_with_defaults(_spec({"widgets": []}))["widgets"] == []
    assert merge_with_defaults(_spec({"widgets": ["team", "tasks", "team"]}))["widgets"] == ["team", "tasks"]


def test_optional_logo_is_kept_when_supplied():
    merged = merge_with_defaults(_spec({"branding": {"logo": "https://cdn.example/logo.png"}}))

    assert merged["branding"]["logo"] == "https://cdn.example/logo.png"
    assert merged["branding"]["primaryColor"] == "#3b82f6"


def test_merge_does_not_leak_into_defaults():
    merged = merge_with_defaults(None)
    merged["widgets"].append("roi")
    merged["branding"]["primaryColor"] = "#ff0000"

    assert DEFAULT_WIDGETS == ["progress", "tasks", "payments", "team"]
    assert DEFAULT_BRANDING["primaryColor"] == "#3b82f6"
