"""
Recipient Resolver

Maps a step + alert category to the users who must receive the alert.

Resolution chain:
    1. the step's assigned user, when active
    2. otherwise every active user holding a role the step's responsible
       role aliases to (ROLE_ALIASES)
    3. otherwise every active ADMIN / MANAGER (catch-all)
    4. urgent / overdue: + the project's manager
    5. overdue: + every active ADMIN / MANAGER (escalation)
    6. de-duplicate by user id, first occurrence wins

When step 3 still finds nobody the resolver raises RecipientResolutionError.

Step-completion notices go to the project manager plus the ADMIN / MANAGER
members of the project team, never to the user who completed the step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import select

from buildtrack.core.exceptions import RecipientResolutionError
from buildtrack.models import db
from buildtrack.models.auth import User
from buildtrack.models.project import project_team_members
from buildtrack.services.alert_policy import AlertCategory
from buildtrack.services.workflow_state import ProjectSnapshot, StepSnapshot

logger = logging.getLogger(__name__)


# Workflow responsibility → database roles
ROLE_ALIASES: dict[str, tuple[str, ...]] = {
    "OFFICE": ("ADMIN", "MANAGER"),
    "ADMINISTRATION": ("ADMIN", "MANAGER"),
    "PROJECT_MANAGER": ("PROJECT_MANAGER", "MANAGER"),
    "FIELD_DIRECTOR": ("PROJECT_MANAGER", "MANAGER"),
    "ROOF_SUPERVISOR": ("PROJECT_MANAGER", "WORKER", "MANAGER"),
}

MANAGEMENT_ROLES = ("ADMIN", "MANAGER")

_PM_CATEGORIES = {AlertCategory.URGENT, AlertCategory.OVERDUE}


def roles_for(responsible_role: str | None) -> tuple[str, ...]:
    """Database roles for a workflow responsibility; unknown roles map to themselves."""
    if not responsible_role:
        return ()
    key = responsible_role.upper()
    return ROLE_ALIASES.get(key, (key,))


@dataclass(frozen=True)
class Recipient:
    id: int
    email: str
    full_name: str
    role: str


class UserDirectory:
    """Active-user lookups against the users table."""

    @staticmethod
    def _to_recipient(user: User) -> Recipient:
        return Recipient(id=user.id, email=user.email, full_name=user.full_name, role=user.role)

    def get_active_user(self, user_id: int | None) -> Recipient | None:
        if user_id is None:
            return None
        user = db.session.get(User, user_id)
        if user is None or not user.is_active:
            return None
        return self._to_recipient(user)

    def active_users_with_roles(self, roles: Iterable[str]) -> list[Recipient]:
        roles = list(roles)
        if not roles:
            return []
        stmt = (
            select(User)
            .where(User.role.in_(roles), User.is_active.is_(True))
            .order_by(User.id)
        )
        return [self._to_recipient(u) for u in db.session.execute(stmt).scalars()]

    def project_team_with_roles(self, project_id: int, roles: Iterable[str]) -> list[Recipient]:
        stmt = (
            select(User)
            .join(project_team_members, project_team_members.c.user_id == User.id)
            .where(
                project_team_members.c.project_id == project_id,
                User.role.in_(list(roles)),
                User.is_active.is_(True),
            )
            .order_by(User.id)
        )
        return [self._to_recipient(u) for u in db.session.execute(stmt).scalars()]


class RecipientResolver:

    def __init__(self, directory: UserDirectory | None = None):
        self.directory = directory or UserDirectory()

    def _primary(self, step: StepSnapshot) -> list[Recipient]:
        assigned = self.directory.get_active_user(step.assigned_user_id)
        if assigned is not None:
            return [assigned]
        if step.assigned_user_id is not None:
            logger.debug("Assigned user %s for step %s missing or inactive, using role %s",
                         step.assigned_user_id, step.id, step.default_responsible_role)

        role_users = self.directory.active_users_with_roles(roles_for(step.default_responsible_role))
        if role_users:
            return role_users

        logger.warning(
            "No active users for role %s (step %s), falling back to admin/manager users",
            step.default_responsible_role, step.id,
            extra={"step_id": step.id, "event_type": "recipient_fallback"},
        )
        return self.directory.active_users_with_roles(MANAGEMENT_ROLES)

    def resolve(
        self,
        step: StepSnapshot,
        project: ProjectSnapshot | None,
        category: AlertCategory,
    ) -> list[Recipient]:
        """Ordered, de-duplicated recipients for ``step`` in ``category``.

        Raises:
            RecipientResolutionError: nobody is eligible after the catch-all.
        """
        category = AlertCategory(category)
        recipients = self._primary(step)
        if not recipients:
            raise RecipientResolutionError(
                step_id=step.id, role=step.default_responsible_role, category=category.value,
            )

        if category in _PM_CATEGORIES and project is not None:
            pm = self.directory.get_active_user(project.project_manager_id)
            if pm is not None:
                recipients.append(pm)

        if category == AlertCategory.OVERDUE:
            recipients.extend(self.directory.active_users_with_roles(MANAGEMENT_ROLES))

        unique: dict[int, Recipient] = {}
        for r in recipients:
            unique.setdefault(r.id, r)
        return list(unique.values())

    def completion_recipients(
        self,
        project: ProjectSnapshot | None,
        completed_by: int | None = None,
    ) -> list[Recipient]:
        """Project manager + ADMIN / MANAGER team members, minus the completer."""
        if project is None:
            return []
        recipients: list[Recipient] = []
        pm = self.directory.get_active_user(project.project_manager_id)
        if pm is not None:
            recipients.append(pm)
        recipients.extend(self.directory.project_team_with_roles(project.id, MANAGEMENT_ROLES))

        unique: dict[int, Recipient] = {}
        for r in recipients:
            if r.id != completed_by:
                unique.setdefault(r.id, r)
        return list(unique.values())
