"""Per-request snapshot of everything the authorization rules look at.

The snapshot is taken once, so repeated ``can`` calls during one request
read the same memberships and never hit the database for them.
"""

import uuid
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.common import Role
from app.models.messaging import ConversationUser, EventParticipant
from app.models.planning import Project, ProjectUser
from app.models.workspace import TeamUser, User, WorkspaceUser
from app.services.permissions import ADMIN_ROLES, Permission, permissions_for


def _frozen(mapping: dict) -> Mapping:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class ActorContext:
    user_id: uuid.UUID
    global_role: Role | None = None
    email: str | None = None
    workspace_roles: Mapping[uuid.UUID, Role] = field(
        default_factory=lambda: _frozen({})
    )
    team_roles: Mapping[uuid.UUID, Role] = field(default_factory=lambda: _frozen({}))
    project_roles: Mapping[uuid.UUID, Role] = field(
        default_factory=lambda: _frozen({})
    )
    # owner, member, or member of the project's team
    accessible_project_ids: frozenset[uuid.UUID] = frozenset()
    conversation_roles: Mapping[uuid.UUID, Role] = field(
        default_factory=lambda: _frozen({})
    )
    event_ids: frozenset[uuid.UUID] = frozenset()

    @property
    def is_admin(self) -> bool:
        return self.global_role in ADMIN_ROLES

    def workspace_role(self, workspace_id) -> Role | None:
        if workspace_id is None:
            return None
        return self.workspace_roles.get(workspace_id)

    def is_member(self, workspace_id) -> bool:
        return self.workspace_role(workspace_id) is not None

    def is_workspace_admin(self, workspace_id) -> bool:
        return self.workspace_role(workspace_id) in ADMIN_ROLES

    def team_role(self, team_id) -> Role | None:
        if team_id is None:
            return None
        return self.team_roles.get(team_id)

    def project_role(self, project_id) -> Role | None:
        if project_id is None:
            return None
        return self.project_roles.get(project_id)

    def can_access_project(self, project_id) -> bool:
        return project_id is None or project_id in self.accessible_project_ids

    def conversation_role(self, conversation_id) -> Role | None:
        return self.conversation_roles.get(conversation_id)

    def has(self, permission: Permission, workspace_id=None) -> bool:
        """Granted by the global role, or by the role held in ``workspace_id``."""
        if permission in permissions_for(self.global_role):
            return True
        return permission in permissions_for(self.workspace_role(workspace_id))


def load_actor(db: Session, user: User) -> ActorContext:
    workspace_roles = {
        row.workspace_id: row.role
        for row in db.scalars(
            select(WorkspaceUser).where(WorkspaceUser.user_id == user.id)
        )
    }
    team_roles = {
        row.team_id: row.role
        for row in db.scalars(select(TeamUser).where(TeamUser.user_id == user.id))
    }
    project_roles = {
        row.project_id: row.role
        for row in db.scalars(
            select(ProjectUser).where(ProjectUser.user_id == user.id)
        )
    }
    accessible = set(project_roles)
    project_stmt = select(Project.id).where(Project.owner_id == user.id)
    if team_roles:
        project_stmt = select(Project.id).where(
            (Project.owner_id == user.id) | Project.team_id.in_(list(team_roles))
        )
    accessible.update(db.scalars(project_stmt).all())
    conversation_roles = {
        row.conversation_id: row.role
        for row in db.scalars(
            select(ConversationUser).where(ConversationUser.user_id == user.id)
        )
    }
    event_ids = db.scalars(
        select(EventParticipant.event_id).where(EventParticipant.user_id == user.id)
    ).all()
    return ActorContext(
        user_id=user.id,
        global_role=user.global_role,
        email=user.email,
        workspace_roles=_frozen(workspace_roles),
        team_roles=_frozen(team_roles),
        project_roles=_frozen(project_roles),
        accessible_project_ids=frozenset(accessible),
        conversation_roles=_frozen(conversation_roles),
        event_ids=frozenset(event_ids),
    )
