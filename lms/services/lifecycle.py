"""
Account activation planning.

Computes how a user's (is_active, disabled_by_org) pair must change when
their organization is disabled, enabled, or when they are moved to another
organization.

The planners take `track_reason`. When it is False the store has no
disabled_by_org column (degraded mode): no reason is read or written, every
inactive user counts as manually disabled and nobody is re-activated by an
organization transition.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import undefer
from sqlalchemy.orm.interfaces import ORMOption

from lms.models.user import User


@dataclass(frozen=True)
class AccountState:
    is_active: bool | None
    disabled_by_org: bool | None = None

    @classmethod
    def of(cls, user: User, track_reason: bool = True) -> AccountState:
        return cls(
            is_active=user.is_active,
            disabled_by_org=user.disabled_by_org if track_reason else None,
        )

    @property
    def active(self) -> bool:
        # NULL is_active counts as active
        return self.is_active is not False

    def manually_disabled(self, track_reason: bool = True) -> bool:
        if self.active:
            return False
        if not track_reason:
            return True
        return self.disabled_by_org is not True


@dataclass(frozen=True)
class AccountChange:
    """Fields to write. None means leave the column untouched."""

    is_active: bool | None = None
    disabled_by_org: bool | None = None

    @property
    def is_noop(self) -> bool:
        return self.is_active is None and self.disabled_by_org is None

    def values(self) -> dict[str, Any]:
        values: dict[str, Any] = {}
        if self.is_active is not None:
            values["is_active"] = self.is_active
        if self.disabled_by_org is not None:
            values["disabled_by_org"] = self.disabled_by_org
        return values

    def apply(self, state: AccountState) -> AccountState:
        return AccountState(
            is_active=state.is_active if self.is_active is None else self.is_active,
            disabled_by_org=(
                state.disabled_by_org if self.disabled_by_org is None else self.disabled_by_org
            ),
        )

    def apply_to(self, user: User) -> None:
        for field, value in self.values().items():
            setattr(user, field, value)


NO_CHANGE = AccountChange()


def _org_caused_disable(track_reason: bool) -> AccountChange:
    return AccountChange(is_active=False, disabled_by_org=True if track_reason else None)


def plan_org_disable(state: AccountState, track_reason: bool = True) -> AccountChange:
    """Active users become org-disabled; inactive users keep their reason."""
    if not state.active:
        return NO_CHANGE
    return _org_caused_disable(track_reason)


def plan_org_enable(state: AccountState, track_reason: bool = True) -> AccountChange:
    """Only users disabled because of the organization come back."""
    if not track_reason:
        return NO_CHANGE
    if state.disabled_by_org is True:
        return AccountChange(is_active=True, disabled_by_org=False)
    return NO_CHANGE


def plan_reassignment(
    state: AccountState,
    destination_active: bool,
    track_reason: bool = True,
) -> AccountChange:
    """Reconcile a moved user against the destination organization."""
    if state.manually_disabled(track_reason):
        return NO_CHANGE
    if not destination_active:
        return _org_caused_disable(track_reason)
    if not track_reason:
        return NO_CHANGE
    return AccountChange(is_active=True, disabled_by_org=False)


def plan_detach(state: AccountState, track_reason: bool = True) -> AccountChange:
    """
    A user leaves organization scope (promotion to a platform role).

    An organization-caused disable no longer has an organization behind it,
    so the reason is cleared and the user stays inactive until enabled.
    """
    if track_reason and not state.active and state.disabled_by_org is True:
        return AccountChange(disabled_by_org=False)
    return NO_CHANGE


def user_load_options(track_reason: bool) -> list[ORMOption]:
    """Loader options for User queries: the reason column only when tracked."""
    if track_reason:
        return [undefer(User.disabled_by_org)]
    return []
