"""
User administration business logic.

Every mutation follows the same order: caller pre-check, subject lookup,
permission decision, mutation, then best-effort audit and notification.
A denial never reaches the mutation step.
"""

from __future__ import annotations

import logging
from uuid import UUID

import redis.asyncio as aioredis
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.config import settings
from lms.core.errors import Forbidden, Internal, NotFound, ValidationFailed
from lms.core.security import (
    create_password_setup_token,
    password_setup_redis_key,
    password_setup_url,
)
from lms.models.organization import Organization
from lms.models.user import PRIVILEGED_ROLES, User, UserRole
from lms.schemas.notification import NotificationCreate
from lms.schemas.user import (
    AssignOrganizationResponse,
    MeResponse,
    MeUser,
    PasswordSetupResponse,
    ProfileUpdateRequest,
    RoleChangeResponse,
    UserActionResponse,
    UserResponse,
    UsersListResponse,
)
from lms.services.audit_service import AuditService, role_label
from lms.services.lifecycle import (
    AccountChange,
    AccountState,
    plan_detach,
    plan_reassignment,
    user_load_options,
)
from lms.services.notification_service import NotificationService
from lms.services.permissions import (
    Action,
    Denial,
    Principal,
    hides_denials,
    may_attempt,
    permit,
)

logger = logging.getLogger(__name__)


class UserService:
    """Handles user lifecycle and profile operations."""

    def __init__(self, db: AsyncSession, redis: aioredis.Redis | None = None) -> None:
        self.db = db
        self.redis = redis
        self.audit = AuditService(db)
        self.notifications = NotificationService(db)

    # -----------------------------------------------------------------------
    # Authorization
    # -----------------------------------------------------------------------

    async def _authorize(
        self,
        actor: User,
        action: Action,
        user_id: UUID,
        new_role: UserRole | None = None,
    ) -> User:
        """
        Load the subject user and check the matrix.

        Raises ValidationFailed for self-targeting, Forbidden for other
        denials and NotFound for unknown ids. Callers that must not learn
        whether an id exists get NotFound for everything.
        """
        principal = Principal.of(actor)
        hide = hides_denials(principal, action)

        precheck = may_attempt(principal, action)
        if not precheck:
            logger.info("Denied %s by user_id=%s: %s", action.value, actor.id, precheck.reason)
            if hide:
                raise NotFound()
            raise Forbidden(precheck.reason)

        target = await self.db.get(
            User, user_id, options=user_load_options(settings.TRACK_DISABLED_BY_ORG)
        )
        if target is None:
            raise NotFound() if hide else NotFound("User not found")

        decision = permit(principal, action, Principal.of(target), new_role=new_role)
        if not decision:
            logger.info(
                "Denied %s by user_id=%s on user_id=%s: %s",
                action.value,
                actor.id,
                target.id,
                decision.reason,
            )
            if hide:
                raise NotFound()
            if decision.denial == Denial.self_target:
                raise ValidationFailed(decision.reason)
            raise Forbidden(decision.reason)

        return target

    # -----------------------------------------------------------------------
    # Disable / Enable
    # -----------------------------------------------------------------------

    async def disable_user(self, actor: User, user_id: UUID) -> UserActionResponse:
        """Manual disable. The reason is recorded as not caused by the organization."""
        target = await self._authorize(actor, Action.disable_user, user_id)
        return await self._set_active(actor, target, active=False)

    async def enable_user(self, actor: User, user_id: UUID) -> UserActionResponse:
        target = await self._authorize(actor, Action.enable_user, user_id)
        return await self._set_active(actor, target, active=True)

    async def _set_active(self, actor: User, target: User, active: bool) -> UserActionResponse:
        track = settings.TRACK_DISABLED_BY_ORG
        previous = AccountState.of(target, track)

        change = AccountChange(is_active=active, disabled_by_org=False if track else None)
        change.apply_to(target)
        await self.db.flush()

        action = Action.enable_user if active else Action.disable_user
        logger.info("%s user_id=%s by user_id=%s", action.value, target.id, actor.id)
        await self.audit.record(
            actor,
            action.value,
            "users",
            target.id,
            target_user_id=target.id,
            metadata={
                "previous_is_active": previous.is_active,
                "previous_disabled_by_org": previous.disabled_by_org,
            },
        )

        return UserActionResponse(
            message="User enabled" if active else "User disabled",
            user_id=target.id,
        )

    # -----------------------------------------------------------------------
    # Role change
    # -----------------------------------------------------------------------

    async def change_role(
        self, actor: User, user_id: UUID, new_role: UserRole
    ) -> RoleChangeResponse:
        """
        Change a user's role.

        Promotion to super_admin or system_admin detaches the user from their
        organization. An organization-caused disable then becomes a plain
        disable.
        """
        target = await self._authorize(actor, Action.change_role, user_id, new_role=new_role)

        track = settings.TRACK_DISABLED_BY_ORG
        previous_role = target.role
        previous_org_id = target.organization_id
        target.role = new_role
        if new_role in PRIVILEGED_ROLES:
            target.organization_id = None
            plan_detach(AccountState.of(target, track), track).apply_to(target)
        await self.db.flush()

        logger.info(
            "Role of user_id=%s changed %s -> %s by user_id=%s",
            target.id,
            previous_role.value,
            new_role.value,
            actor.id,
        )
        await self.audit.record(
            actor,
            "change_user_role",
            "users",
            target.id,
            target_user_id=target.id,
            metadata={
                "from": previous_role,
                "to": new_role,
                "previous_organization_id": previous_org_id,
            },
        )
        await self.notifications.emit_to_users(
            NotificationCreate(
                type="role_changed",
                title="Your role was updated",
                body=f"Your role is now {role_label(new_role.value)}.",
                org_id=target.organization_id,
                entity="users",
                entity_id=str(target.id),
                href="/profile",
                metadata={"from": previous_role.value, "to": new_role.value},
            ),
            [target.id],
            actor_id=actor.id,
        )

        return RoleChangeResponse(
            message="Role updated",
            user_id=target.id,
            new_role=new_role,
        )

    # -----------------------------------------------------------------------
    # Organization assignment
    # -----------------------------------------------------------------------

    async def assign_organization(
        self, actor: User, user_id: UUID, organization_id: UUID
    ) -> AssignOrganizationResponse:
        """
        Move a user to another organization and reconcile their activation.

        Manually disabled users stay disabled. Everyone else follows the
        destination organization's state.
        """
        target = await self._authorize(actor, Action.assign_organization, user_id)

        org = await self.db.get(Organization, organization_id)
        if org is None:
            raise NotFound("Organization not found")

        track = settings.TRACK_DISABLED_BY_ORG
        previous_org_id = target.organization_id
        change = plan_reassignment(AccountState.of(target, track), bool(org.is_active), track)

        target.organization_id = org.id
        change.apply_to(target)
        await self.db.flush()

        logger.info(
            "User user_id=%s moved to org_id=%s by user_id=%s (is_active=%s)",
            target.id,
            org.id,
            actor.id,
            target.is_active,
        )
        await self.audit.record(
            actor,
            "assign_user_organization",
            "users",
            target.id,
            target_user_id=target.id,
            metadata={
                "from_organization_id": previous_org_id,
                "to_organization_id": org.id,
                "is_active": target.is_active,
                "disabled_by_org": target.disabled_by_org if track else None,
            },
        )
        await self.notifications.emit_to_users(
            NotificationCreate(
                type="organization_assigned",
                title="Organization updated",
                body=f"You are now a member of {org.name}.",
                org_id=org.id,
                entity="organizations",
                entity_id=str(org.id),
                href=f"/organizations/{org.slug}",
            ),
            [target.id],
            actor_id=actor.id,
        )

        return AssignOrganizationResponse(
            message="User assigned to organization",
            user_id=target.id,
            organization_id=org.id,
            is_active=target.is_active,
        )

    # -----------------------------------------------------------------------
    # Resend invite / Password setup link
    # -----------------------------------------------------------------------

    async def send_password_setup(
        self,
        actor: User,
        user_id: UUID,
        action: Action = Action.send_password_setup,
    ) -> PasswordSetupResponse:
        """
        Issue a one-time password setup token and queue the email.

        - Stores pwd_setup:{token} -> user id in Redis with a TTL
        - Queues send_password_setup_email via Celery
        """
        target = await self._authorize(actor, action, user_id)

        if self.redis is None:
            raise Internal("Failed to send password setup link.")

        token = create_password_setup_token()
        try:
            await self.redis.set(
                password_setup_redis_key(token),
                str(target.id),
                ex=settings.PASSWORD_SETUP_TOKEN_TTL_SECONDS,
            )

            from lms.workers.email_tasks import send_password_setup_email
            send_password_setup_email.delay(
                to_email=target.email,
                full_name=target.full_name,
                setup_url=password_setup_url(token),
                invite=action == Action.resend_invite,
            )
        except Exception as exc:
            logger.exception("Password setup link failed for user_id=%s", target.id)
            raise Internal("Failed to send password setup link.") from exc

        await self.audit.record(
            actor,
            "send_password_setup_link",
            "users",
            target.id,
            target_user_id=target.id,
            metadata={"via": action.value, "email": target.email},
        )

        message = "Invite resent" if action == Action.resend_invite else "Password setup link sent"
        return PasswordSetupResponse(message=message, user_id=target.id)

    # -----------------------------------------------------------------------
    # List users
    # -----------------------------------------------------------------------

    async def list_users(
        self,
        actor: User,
        organization_id: UUID | None = None,
        role: UserRole | None = None,
        is_active: bool | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> UsersListResponse:
        """
        List users visible to the caller.

        Super/system admins see everyone; organization admins only their own
        organization; members are refused.
        """
        principal = Principal.of(actor)
        if not principal.is_privileged:
            if principal.role != UserRole.organization_admin or principal.organization_id is None:
                raise Forbidden("Forbidden: insufficient permissions")
            if organization_id is not None and organization_id != principal.organization_id:
                raise Forbidden("Forbidden: org mismatch")
            organization_id = principal.organization_id

        filters = []
        if organization_id is not None:
            filters.append(User.organization_id == organization_id)
        if role is not None:
            filters.append(User.role == role)
        if is_active is True:
            filters.append(User.is_active.is_not(False))
        elif is_active is False:
            filters.append(User.is_active.is_(False))

        total = await self.db.scalar(select(func.count()).select_from(User).where(*filters)) or 0
        track = settings.TRACK_DISABLED_BY_ORG
        result = await self.db.execute(
            select(User)
            .options(*user_load_options(track))
            .where(*filters)
            .order_by(User.created_at.desc(), User.email)
            .limit(limit)
            .offset(offset)
        )
        users = [UserResponse.from_user(u, track) for u in result.scalars().all()]
        return UsersListResponse(users=users, total=total)

    # -----------------------------------------------------------------------
    # Me
    # -----------------------------------------------------------------------

    async def get_me(self, user: User, message: str | None = None) -> MeResponse:
        org = None
        if user.organization_id is not None:
            org = await self.db.get(Organization, user.organization_id)

        return MeResponse(
            user=MeUser(
                id=user.id,
                email=user.email,
                role=user.role,
                organization_id=user.organization_id,
                organization_name=org.name if org else None,
                organization_slug=org.slug if org else None,
                full_name=user.full_name,
            ),
            message=message,
        )

    async def update_profile(self, user: User, data: ProfileUpdateRequest) -> MeResponse:
        """Update the caller's own profile. Only full_name is editable."""
        if "full_name" not in data.model_fields_set:
            raise ValidationFailed("Nothing to update.")

        user.full_name = data.full_name
        await self.db.flush()
        return await self.get_me(user, message="Profile updated")
