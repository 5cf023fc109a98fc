# provisioning/resource_store.py
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from sqlalchemy.orm import Session

from provisioning.entities import (
    Client,
    DashboardConfig,
    PaymentSchedule,
    Phase,
    Profile,
    Project,
    ProjectMember,
    Task,
)

logger = logging.getLogger("provisioning.store")

Row = Dict[str, Any]


class ResourceStore(Protocol):
    """
    Persistence capability used by the provisioning steps and the response
    assembler. Every call is independent: there is no transaction spanning
    two calls, so multi-resource atomicity is the caller's job.
    """

    def select_client(self, client_id: str) -> Optional[Row]: ...

    def insert_project(self, values: Row) -> str: ...
    def select_project(self, project_id: str) -> Optional[Row]: ...
    def delete_projects(self, ids: List[str]) -> int: ...

    def insert_phases(self, rows: List[Row]) -> List[str]: ...
    def select_phases(self, project_id: str) -> List[Row]: ...
    def delete_phases(self, ids: List[str]) -> int: ...

    def insert_tasks(self, rows: List[Row]) -> List[str]: ...
    def select_tasks(self, phase_ids: List[str]) -> List[Row]: ...
    def delete_tasks(self, ids: List[str]) -> int: ...

    def insert_project_members(self, rows: List[Row]) -> List[str]: ...
    def select_project_members(self, project_id: str) -> List[Row]: ...
    def delete_project_members(self, ids: List[str]) -> int: ...

    def insert_payment_schedules(self, rows: List[Row]) -> List[str]: ...
    def select_payment_schedules(self, project_id: str) -> List[Row]: ...
    def delete_payment_schedules(self, ids: List[str]) -> int: ...

    def insert_dashboard_config(self, values: Row) -> str: ...
    def select_dashboard_config(self, project_id: str) -> Optional[Row]: ...
    def delete_dashboard_configs(self, ids: List[str]) -> int: ...


def _row_to_dict(obj) -> Row:
    return {c.key: getattr(obj, c.key) for c in obj.__table__.columns}


class SqlResourceStore:
    """ResourceStore backed by SQLAlchemy. One short-lived session per call."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.Session = session_factory

    # -----------------------
    # Generic helpers
    # -----------------------

    def _insert_many(self, model, rows: Iterable[Row]) -> List[str]:
        rows = list(rows)
        if not rows:
            return []
        session = self.Session()
        try:
            objs = [model(**row) for row in rows]
            session.add_all(objs)
            session.flush()
            ids = [o.id for o in objs]
            session.commit()
            logger.debug("inserted %d %s row(s)", len(ids), model.__tablename__)
            return ids
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _delete_by_ids(self, model, ids: Iterable[str]) -> int:
        ids = [str(i) for i in ids]
        if not ids:
            return 0
        session = self.Session()
        try:
            deleted = (
                session.query(model)
                .filter(model.id.in_(ids))
                .delete(synchronize_session=False)
            )
            session.commit()
            logger.debug("deleted %d %s row(s)", deleted, model.__tablename__)
            return deleted
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _select_all(self, model, *criteria, order_by=None) -> List[Row]:
        session = self.Session()
        try:
            query = session.query(model).filter(*criteria)
            if order_by is not None:
                query = query.order_by(order_by)
            return [_row_to_dict(o) for o in query.all()]
        finally:
            session.close()

    def _select_one(self, model, *criteria) -> Optional[Row]:
        session = self.Session()
        try:
            obj = session.query(model).filter(*criteria).one_or_none()
            return _row_to_dict(obj) if obj is not None else None
        finally:
            session.close()

    # -----------------------
    # Clients (read-only directory)
    # -----------------------

    def select_client(self, client_id: str) -> Optional[Row]:
        return self._select_one(Client, Client.id == str(client_id))

    # -----------------------
    # Projects
    # -----------------------

    def insert_project(self, values: Row) -> str:
        return self._insert_many(Project, [values])[0]

    def select_project(self, project_id: str) -> Optional[Row]:
        return self._select_one(Project, Project.id == str(project_id))

    def delete_projects(self, ids: List[str]) -> int:
        return self._delete_by_ids(Project, ids)

    # -----------------------
    # Phases
    # -----------------------

    def insert_phases(self, rows: List[Row]) -> List[str]:
        return self._insert_many(Phase, rows)

    def select_phases(self, project_id: str) -> List[Row]:
        return self._select_all(Phase, Phase.project_id == str(project_id), order_by=Phase.order_index)

    def delete_phases(self, ids: List[str]) -> int:
        """Delete the given phases and, in the same transaction, every task they own."""
        ids = [str(i) for i in ids]
        if not ids:
            return 0
        session = self.Session()
        try:
            tasks_deleted = (
                session.query(Task)
                .filter(Task.phase_id.in_(ids))
                .delete(synchronize_session=False)
            )
            deleted = (
                session.query(Phase)
                .filter(Phase.id.in_(ids))
                .delete(synchronize_session=False)
            )
            session.commit()
            logger.debug("deleted %d phase(s) and %d cascaded task(s)", deleted, tasks_deleted)
            return deleted
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # -----------------------
    # Tasks
    # -----------------------

    def insert_tasks(self, rows: List[Row]) -> List[str]:
        return self._insert_many(Task, rows)

    def select_tasks(self, phase_ids: List[str]) -> List[Row]:
        if not phase_ids:
            return []
        return self._select_all(Task, Task.phase_id.in_([str(i) for i in phase_ids]))

    def delete_tasks(self, ids: List[str]) -> int:
        return self._delete_by_ids(Task, ids)

    # -----------------------
    # Project members
    # -----------------------

    def insert_project_members(self, rows: List[Row]) -> List[str]:
        return self._insert_many(ProjectMember, rows)

    def select_project_members(self, project_id: str) -> List[Row]:
        """Members of a project, each with its joined profile under ``"profile"`` (or None)."""
        session = self.Session()
        try:
            rows = (
                session.query(ProjectMember, Profile)
                .outerjoin(Profile, Profile.id == ProjectMember.profile_id)
                .filter(ProjectMember.project_id == str(project_id))
                .order_by(ProjectMember.created_at.asc())
                .all()
            )
            out = []
            for member, profile in rows:
                item = _row_to_dict(member)
                item["profile"] = _row_to_dict(profile) if profile is not None else None
                out.append(item)
            return out
        finally:
            session.close()

    def delete_project_members(self, ids: List[str]) -> int:
        return self._delete_by_ids(ProjectMember, ids)

    # -----------------------
    # Payment schedule
    # -----------------------

    def insert_payment_schedules(self, rows: List[Row]) -> List[str]:
        return self._insert_many(PaymentSchedule, rows)

    def select_payment_schedules(self, project_id: str) -> List[Row]:
        return self._select_all(
            PaymentSchedule,
            PaymentSchedule.project_id == str(project_id),
            order_by=PaymentSchedule.due_date,
        )

    def delete_payment_schedules(self, ids: List[str]) -> int:
        return self._delete_by_ids(PaymentSchedule, ids)

    # -----------------------
    # Dashboard config
    # -----------------------

    def insert_dashboard_config(self, values: Row) -> str:
        return self._insert_many(DashboardConfig, [values])[0]

    def select_dashboard_config(self, project_id: str) -> Optional[Row]:
        return self._select_one(DashboardConfig, DashboardConfig.project_id == str(project_id))

    def delete_dashboard_configs(self, ids: List[str]) -> int:
        return self._delete_by_ids(DashboardConfig, ids)
