"""
Role and permission matrix.

Pure decision functions answering whether an actor may perform an action on
a subject user. Nothing here touches the database; services load the rows,
ask for a Decision and only then mutate.

Every action must match an explicit rule. Anything unmatched is denied.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from uuid import UUID

from lms.models.user import ORG_SCOPED_ROLES, PRIVILEGED_ROLES, User, UserRole


class Action(str, enum.Enum):
    """Mutating actions governed by the matrix."""

    disable_user = "disable_user"
    enable_user = "enable_user"
    change_role = "change_role"
    assign_organization = "assign_organization"
    resend_invite = "resend_invite"
    send_password_setup = "send_password_setup"
    disable_organization = "disable_organization"
    enable_organization = "enable_organization"


ORGANIZATION_ACTIONS = frozenset({Action.disable_organization, Action.enable_organization})


class Denial(str, enum.Enum):
    """Why a decision was negative."""

    self_target = "self_target"
    forbidden = "forbidden"


@dataclass(frozen=True)
class Principal:
    """The role-relevant slice of a user, as actor or as subject."""

    id: UUID
    role: UserRole
    organization_id: UUID | None = None

    @classmethod
    def of(cls, user: User) -> Principal:
        return cls(id=user.id, role=UserRole(user.role), organization_id=user.organization_id)

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""
    denial: Denial | None = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(allowed=True)


def deny(reason: str, denial: Denial = Denial.forbidden) -> Decision:
    return Decision(allowed=False, reason=reason, denial=denial)


def _same_org(actor: Principal, subject: Principal) -> bool:
    return actor.organization_id is not None and actor.organization_id == subject.organization_id


# ---------------------------------------------------------------------------
# Caller-only pre-check
# ---------------------------------------------------------------------------

def may_attempt(actor: Principal, action: Action) -> Decision:
    """
    Decide from the actor's role alone whether the action can ever succeed.

    Runs before the subject is loaded so callers without any path to
    permission never cause a lookup.
    """
    if actor.is_privileged:
        return ALLOW
    if actor.role == UserRole.organization_admin and action in {
        Action.disable_user,
        Action.enable_user,
        Action.resend_invite,
        Action.send_password_setup,
    }:
        return ALLOW
    return deny("Forbidden: insufficient permissions")


# ---------------------------------------------------------------------------
# Per-action rules
# ---------------------------------------------------------------------------

def can_set_user_active(actor: Principal, subject: Principal, *, enabling: bool) -> Decision:
    """Disable/enable a user account."""
    verb = "enable" if enabling else "disable"
    if actor.id == subject.id:
        return deny(f"Cannot {verb} your own account", Denial.self_target)
    if subject.role == UserRole.super_admin:
        return deny(f"Forbidden: cannot {verb} super_admin")
    if actor.is_privileged:
        return ALLOW
    if actor.role == UserRole.organization_admin:
        if not _same_org(actor, subject):
            return deny("Forbidden: org mismatch")
        if subject.role != UserRole.member:
            return deny(f"Forbidden: org admins can only {verb} members")
        return ALLOW
    return deny("Forbidden: insufficient permissions")


def can_change_role(actor: Principal, subject: Principal, new_role: UserRole) -> Decision:
    if actor.id == subject.id:
        return deny("Cannot change your own role", Denial.self_target)
    if not actor.is_privileged:
        return deny("Forbidden: insufficient permissions")
    if subject.role == UserRole.super_admin:
        return deny("Forbidden: super_admin role cannot be changed")
    if actor.role == UserRole.system_admin and new_role == UserRole.super_admin:
        return deny("Forbidden: system_admin cannot assign super_admin role")
    return ALLOW


def can_assign_organization(actor: Principal, subject: Principal) -> Decision:
    if not actor.is_privileged:
        return deny("Forbidden: insufficient permissions")
    if subject.role == UserRole.super_admin:
        return deny("Forbidden: super_admin cannot be modified")
    if subject.role not in ORG_SCOPED_ROLES:
        return deny("Forbidden: only organization_admin/member can be assigned to an organization")
    return ALLOW


def can_send_password_setup(actor: Principal, subject: Principal) -> Decision:
    """Resend invite / send password setup link."""
    if actor.role == UserRole.super_admin:
        return ALLOW
    if subject.role == UserRole.super_admin:
        return deny("Forbidden: cannot send setup link for super_admin")
    if actor.role == UserRole.system_admin:
        return ALLOW
    if actor.role == UserRole.organization_admin:
        if not _same_org(actor, subject):
            return deny("Forbidden: org mismatch")
        if subject.role not in ORG_SCOPED_ROLES:
            return deny("Forbidden: org admins can only manage members and org admins")
        return ALLOW
    return deny("Forbidden: insufficient permissions")


def can_manage_organizations(actor: Principal) -> Decision:
    """Disable/enable an organization."""
    if actor.is_privileged:
        return ALLOW
    return deny("Forbidden")


def can_view_organization(actor: Principal, organization_id: UUID) -> bool:
    return actor.is_privileged or actor.organization_id == organization_id


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

def permit(
    actor: Principal,
    action: Action,
    subject: Principal | None = None,
    *,
    new_role: UserRole | None = None,
) -> Decision:
    """Single entry point over the whole matrix."""
    if action in ORGANIZATION_ACTIONS:
        return can_manage_organizations(actor)
    if subject is None:
        raise ValueError(f"{action.value} requires a subject user")
    if action == Action.disable_user:
        return can_set_user_active(actor, subject, enabling=False)
    if action == Action.enable_user:
        return can_set_user_active(actor, subject, enabling=True)
    if action == Action.change_role:
        if new_role is None:
            raise ValueError("change_role requires new_role")
        return can_change_role(actor, subject, new_role)
    if action == Action.assign_organization:
        return can_assign_organization(actor, subject)
    if action in (Action.resend_invite, Action.send_password_setup):
        return can_send_password_setup(actor, subject)
    return deny("Forbidden")


def hides_denials(actor: Principal, action: Action) -> bool:
    """
    True when "not found" and "not permitted" must look identical.

    Non-privileged callers of the invite resend flow must not learn whether
    a user id exists.
    """
    return action == Action.resend_invite and not actor.is_privileged
