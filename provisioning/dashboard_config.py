# provisioning/dashboard_config.py
from typing import Any, Dict, List, Optional

from pydantic.alias_generators import to_camel

from provisioning.schemas import DashboardConfigSpec

DEFAULT_WIDGETS: List[str] = ["progress", "tasks", "payments", "team"]

DEFAULT_BRANDING: Dict[str, Any] = {
    "primaryColor": "#3b82f6",
    "welcomeMessage": "Welcome to your project dashboard",
}

DEFAULT_PERMISSIONS: Dict[str, bool] = {
    "viewTasks": True,
    "viewPayments": True,
    "viewTeam": True,
    "viewTimeline": True,
}

DEFAULT_NOTIFICATIONS: Dict[str, bool] = {
    "emailUpdates": True,
    "deadlineReminders": True,
    "paymentReminders": True,
}


def _overlay(defaults: Dict[str, Any], supplied: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    merged = dict(defaults)
    for key, value in (supplied or {}).items():
        if value is not None:
            merged[key] = value
    return merged


def _unique_widgets(widgets: List[str]) -> List[str]:
    seen = set()
    out = []
    for w in widgets:
        key = (w or "").strip()
        if key and key not in seen:
            seen.add(key)
            out.append(key)
    return out


def merge_with_defaults(spec: Optional[DashboardConfigSpec]) -> Dict[str, Any]:
    """
    Resolve the dashboard configuration that gets persisted for a new project.

    Every sub-object is optional: an absent sub-object yields the defaults
    above, and inside a supplied sub-object each absent field falls back to its
    default. A supplied widget list (even an empty one) replaces the default
    list; duplicates are dropped keeping first occurrence.
    Pure: never mutates the defaults or the supplied config.
    """
    spec = spec or DashboardConfigSpec()

    def _dump(sub) -> Optional[Dict[str, Any]]:
        # stored JSON keeps the camelCase keys the dashboard reads
        if sub is None:
            return None
        return {to_camel(k): v for k, v in sub.model_dump(exclude_none=True, mode="json").items()}

    return {
        "widgets": _unique_widgets(spec.widgets) if spec.widgets is not None else list(DEFAULT_WIDGETS),
        "branding": _overlay(DEFAULT_BRANDING, _dump(spec.branding)),
        "permissions": _overlay(DEFAULT_PERMISSIONS, _dump(spec.permissions)),
        "notifications": _overlay(DEFAULT_NOTIFICATIONS, _dump(spec.notifications)),
    }

