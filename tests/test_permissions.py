"""
Permission matrix tests.

Every (actor role, action, target role, same/other org) combination is
checked against an explicit expected table. Self-targeting, super_admin
protection and organization scoping are covered separately.
"""

import itertools
import uuid

import pytest

from lms.models.user import UserRole
from lms.services.permissions import (
    Action,
    Denial,
    Principal,
    can_view_organization,
    hides_denials,
    may_attempt,
    permit,
)

SA = UserRole.super_admin
SY = UserRole.system_admin
OA = UserRole.organization_admin
ME = UserRole.member
ALL_ROLES = frozenset(UserRole)
NOBODY = frozenset()

ORG_A = uuid.uuid4()
ORG_B = uuid.uuid4()

# (action) -> actor role -> (targets allowed in the same org, targets allowed in another org)
EXPECTED = {
    Action.disable_user: {
        SA: ({SY, OA, ME}, {SY, OA, ME}),
        SY: ({SY, OA, ME}, {SY, OA, ME}),
        OA: ({ME}, NOBODY),
        ME: (NOBODY, NOBODY),
    },
    Action.enable_user: {
        SA: ({SY, OA, ME}, {SY, OA, ME}),
        SY: ({SY, OA, ME}, {SY, OA, ME}),
        OA: ({ME}, NOBODY),
        ME: (NOBODY, NOBODY),
    },
    Action.assign_organization: {
        SA: ({OA, ME}, {OA, ME}),
        SY: ({OA, ME}, {OA, ME}),
        OA: (NOBODY, NOBODY),
        ME: (NOBODY, NOBODY),
    },
    Action.resend_invite: {
        SA: (ALL_ROLES, ALL_ROLES),
        SY: ({SY, OA, ME}, {SY, OA, ME}),
        OA: ({OA, ME}, NOBODY),
        ME: (NOBODY, NOBODY),
    },
    Action.send_password_setup: {
        SA: (ALL_ROLES, ALL_ROLES),
        SY: ({SY, OA, ME}, {SY, OA, ME}),
        OA: ({OA, ME}, NOBODY),
        ME: (NOBODY, NOBODY),
    },
}

# actor role -> new role -> target roles whose role may be changed (any org)
EXPECTED_ROLE_CHANGE = {
    SA: {new: {SY, OA, ME} for new in UserRole},
    SY: {SA: NOBODY, SY: {SY, OA, ME}, OA: {SY, OA, ME}, ME: {SY, OA, ME}},
    OA: {new: NOBODY for new in UserRole},
    ME: {new: NOBODY for new in UserRole},
}


def principal(role: UserRole, org_id: uuid.UUID | None = ORG_A) -> Principal:
    return Principal(id=uuid.uuid4(), role=role, organization_id=org_id)


# ---------------------------------------------------------------------------
# 1. Cross-product
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "action,actor_role,target_role,same_org",
    list(itertools.product(EXPECTED, UserRole, UserRole, [True, False])),
)
def test_user_action_matrix(action, actor_role, target_role, same_org):
    actor = principal(actor_role)
    target = principal(target_role, ORG_A if same_org else ORG_B)

    allowed_same, allowed_other = EXPECTED[action][actor_role]
    expected = target_role in (allowed_same if same_org else allowed_other)

    decision = permit(actor, action, target)
    assert decision.allowed is expected, (
        f"{actor_role.value} {action.value} {target_role.value} "
        f"({'same' if same_org else 'other'} org): {decision.reason}"
    )
    if not expected:
        assert decision.reason
        assert decision.denial == Denial.forbidden


@pytest.mark.parametrize(
    "actor_role,target_role,new_role,same_org",
    list(itertools.product(UserRole, UserRole, UserRole, [True, False])),
)
def test_role_change_matrix(actor_role, target_role, new_role, same_org):
    actor = principal(actor_role)
    target = principal(target_role, ORG_A if same_org else ORG_B)

    expected = target_role in EXPECTED_ROLE_CHANGE[actor_role][new_role]

    decision = permit(actor, Action.change_role, target, new_role=new_role)
    assert decision.allowed is expected, decision.reason


@pytest.mark.parametrize("actor_role", list(UserRole))
@pytest.mark.parametrize("action", [Action.disable_organization, Action.enable_organization])
def test_organization_actions(actor_role, action):
    expected = actor_role in (SA, SY)
    assert permit(principal(actor_role), action).allowed is expected


# ---------------------------------------------------------------------------
# 2. Universal constraints
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("role", list(UserRole))
@pytest.mark.parametrize("action", [Action.disable_user, Action.enable_user, Action.change_role])
def test_self_targeting_is_denied(role, action):
    actor = principal(role)
    decision = permit(actor, action, actor, new_role=ME)
    assert not decision
    assert decision.denial == Denial.self_target


def test_super_admin_may_resend_own_invite():
    actor = principal(SA, None)
    assert permit(actor, Action.resend_invite, actor)


@pytest.mark.parametrize("actor_role", [SA, SY])
@pytest.mark.parametrize(
    "action", [Action.disable_user, Action.enable_user, Action.assign_organization]
)
def test_super_admin_is_never_a_mutation_target(actor_role, action):
    target = principal(SA, None)
    decision = permit(principal(actor_role, None), action, target)
    assert not decision
    assert "super_admin" in decision.reason


@pytest.mark.parametrize("new_role", list(UserRole))
def test_super_admin_role_is_immutable(new_role):
    decision = permit(principal(SA, None), Action.change_role, principal(SA, None), new_role=new_role)
    assert not decision


def test_org_admin_without_org_gets_nothing():
    actor = principal(OA, None)
    target = principal(ME, None)
    for action in (Action.disable_user, Action.enable_user, Action.resend_invite):
        assert not permit(actor, action, target), action


def test_permit_requires_subject_and_new_role():
    with pytest.raises(ValueError):
        permit(principal(SA), Action.disable_user)
    with pytest.raises(ValueError):
        permit(principal(SA), Action.change_role, principal(ME))


# ---------------------------------------------------------------------------
# 3. Pre-check, visibility and anti-enumeration
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("action", list(Action))
def test_may_attempt_never_stricter_than_matrix(action):
    """Anything the full matrix allows must also pass the caller-only pre-check."""
    for actor_role, target_role, same_org in itertools.product(UserRole, UserRole, [True, False]):
        actor = principal(actor_role)
        target = principal(target_role, ORG_A if same_org else ORG_B)
        if permit(actor, action, target, new_role=ME):
            assert may_attempt(actor, action), (actor_role, target_role, action)


def test_member_fails_precheck_for_every_action():
    member = principal(ME)
    assert not any(may_attempt(member, action) for action in Action)


def test_hides_denials_only_for_non_privileged_resend():
    assert hides_denials(principal(OA), Action.resend_invite)
    assert hides_denials(principal(ME), Action.resend_invite)
    assert not hides_denials(principal(SY), Action.resend_invite)
    assert not hides_denials(principal(OA), Action.send_password_setup)


def test_can_view_organization():
    assert can_view_organization(principal(SA, None), ORG_B)
    assert can_view_organization(principal(ME, ORG_A), ORG_A)
    assert not can_view_organization(principal(OA, ORG_A), ORG_B)
