"""
app/domain/workspace.py

Workspace (tenant) context resolved for the current user.
"""

from __future__ import annotations

from dataclasses import dataclass, field


class WorkspaceType:
    PERSONAL = "personal"
    ORGANIZATION = "organization"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class WorkspaceContext:
    """
    The organization a user acts within and the users they may assign to roles.

    ``directory_id`` is only set for directory workspaces.
    """

    type: str
    organization_id: str
    user_id: str
    assignable_user_ids: list[str] = field(default_factory=list)
    directory_id: str | None = None

    def can_assign(self, user_id: str) -> bool:
        return user_id in self.assignable_user_ids
