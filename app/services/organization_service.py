"""
app/services/organization_service.py

Organization member listing and per-member role statistics.

Members come from WorkOS: organization memberships first, then directory
users, merged by lower-cased email. A directory user replaces a membership
with the same email because directory ids are the ones roles are assigned to.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.connectors.base import ConnectorRequestError
from app.domain.workspace import WorkspaceContext, WorkspaceType
from app.errors import OrgPulseError
from app.repositories.metric_data_repository import MetricDataRepository
from app.services.authorization import WorkspaceResolver, directory_user_email, get_workspace_resolver
from db.models.metric import Metric
from db.models.role import Role
from db.models.team import Team

logger = logging.getLogger(__name__)


class MemberSource:
    MEMBERSHIP = "membership"
    DIRECTORY = "directory"
    BOTH = "both"


@dataclass
class Member:
    id: str
    email: str | None
    first_name: str | None = None
    last_name: str | None = None
    profile_picture_url: str | None = None
    job_title: str | None = None
    groups: list[dict[str, Any]] = field(default_factory=list)
    source: str = MemberSource.MEMBERSHIP
    can_login: bool = True

    @property
    def display_name(self) -> str:
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or self.email or self.id


@dataclass
class MemberStats:
    role_count: int = 0
    total_effort: int = 0
    goals_on_track: int = 0
    goals_total: int = 0


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


def fetch_organization_members(
    workspace: WorkspaceContext,
    resolver: WorkspaceResolver | None = None,
) -> list[Member]:
    """
    List everyone in the caller's organization.

    A personal workspace has exactly one member, the user. Raises
    OrgPulseError when WorkOS cannot be reached.
    """

    if workspace.type == WorkspaceType.PERSONAL:
        return [Member(id=workspace.user_id, email=None)]

    resolver = resolver or get_workspace_resolver()
    members: dict[str, Member] = {}
    try:
        memberships = resolver.client.list_organization_memberships(organization_id=workspace.organization_id)
        for membership in memberships:
            user_id = membership.get("user_id")
            if not user_id:
                continue
            user = resolver.client.get_user(str(user_id))
            email = str(user.get("email") or "")
            members[email.lower() or str(user_id)] = Member(
                id=str(user.get("id") or user_id),
                email=email or None,
                first_name=user.get("first_name"),
                last_name=user.get("last_name"),
                profile_picture_url=user.get("profile_picture_url"),
            )

        directory_users = resolver.get_directory_users() if workspace.directory_id else []
    except ConnectorRequestError as exc:
        logger.error("Failed to load organization members organization_id=%s error=%s", workspace.organization_id, exc)
        raise OrgPulseError("Failed to load organization members") from exc

    for user in directory_users:
        email = directory_user_email(user)
        if not email or not user.get("id"):
            continue
        is_member = email in members
        members[email] = Member(
            id=str(user["id"]),
            email=email,
            first_name=user.get("first_name"),
            last_name=user.get("last_name"),
            job_title=user.get("job_title"),
            groups=list(user.get("groups") or []),
            source=MemberSource.BOTH if is_member else MemberSource.DIRECTORY,
            can_login=is_member,
        )

    return list(members.values())


# ---------------------------------------------------------------------------
# Member stats
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AssignedRole:
    user_id: str
    effort_points: int | None
    goal_target: float | None
    latest_value: float | None


def aggregate_member_stats(roles: Iterable[AssignedRole]) -> dict[str, MemberStats]:
    """
    A goal counts as on track when the metric's latest value has reached
    the goal target.
    """

    stats: dict[str, MemberStats] = {}
    for role in roles:
        entry = stats.setdefault(role.user_id, MemberStats())
        entry.role_count += 1
        entry.total_effort += role.effort_points or 0
        if role.goal_target is not None:
            entry.goals_total += 1
            if role.latest_value is not None and role.latest_value >= role.goal_target:
                entry.goals_on_track += 1
    return stats


def get_member_stats(session: Session, organization_id: str) -> dict[str, MemberStats]:
    stmt = (
        select(Role)
        .join(Team, Role.team_id == Team.id)
        .where(Team.organization_id == organization_id, Role.assigned_user_id.is_not(None))
        .options(selectinload(Role.metric).selectinload(Metric.goal))
    )
    roles = session.execute(stmt).scalars().all()

    repository = MetricDataRepository(session)
    latest: dict[uuid.UUID, float | None] = {}
    assigned: list[AssignedRole] = []
    for role in roles:
        metric = role.metric
        goal = metric.goal if metric is not None else None
        value: float | None = None
        if goal is not None:
            if metric.id not in latest:
                points = repository.latest_points(metric.id, 1)
                latest[metric.id] = points[-1].value if points else None
            value = latest[metric.id]
        assigned.append(
            AssignedRole(
                user_id=str(role.assigned_user_id),
                effort_points=role.effort_points,
                goal_target=goal.target_value if goal is not None else None,
                latest_value=value,
            )
        )
    return aggregate_member_stats(assigned)
