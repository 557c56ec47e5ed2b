"""
Organization business logic.

Lookup by UUID or slug, and the disable/enable cascade onto the
organization's users.
"""

from __future__ import annotations

import logging
import re
from uuid import UUID

from sqlalchemy import Update, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.config import settings
from lms.core.errors import Forbidden, Internal, NotFound
from lms.models.organization import Organization
from lms.models.user import User
from lms.schemas.notification import NotificationCreate
from lms.schemas.organization import (
    OrganizationResponse,
    OrganizationsListResponse,
    OrganizationStatusResponse,
)
from lms.services.audit_service import AuditService
from lms.services.lifecycle import AccountState, plan_org_disable, plan_org_enable
from lms.services.notification_service import NotificationService
from lms.services.permissions import Principal, can_manage_organizations, can_view_organization

logger = logging.getLogger(__name__)

UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


def parse_org_key(key: str) -> UUID | str:
    """A route key is either an organization id or its slug (case-insensitive)."""
    key = key.strip()
    if UUID_RE.match(key):
        return UUID(key)
    return key.lower()


class OrganizationService:
    """Handles organization lookup and activation."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.audit = AuditService(db)
        self.notifications = NotificationService(db)

    # -----------------------------------------------------------------------
    # Lookup
    # -----------------------------------------------------------------------

    async def _get_by_key(self, key: str) -> Organization:
        parsed = parse_org_key(key)
        if isinstance(parsed, UUID):
            clause = Organization.id == parsed
        else:
            clause = Organization.slug == parsed

        result = await self.db.execute(select(Organization).where(clause))
        org = result.scalar_one_or_none()
        if org is None:
            raise NotFound("Organization not found")
        return org

    async def get_organization(self, actor: User, key: str) -> OrganizationResponse:
        """Privileged callers see any organization; others only their own."""
        org = await self._get_by_key(key)
        if not can_view_organization(Principal.of(actor), org.id):
            raise NotFound("Organization not found")
        return OrganizationResponse.model_validate(org)

    async def list_organizations(self, actor: User) -> OrganizationsListResponse:
        decision = can_manage_organizations(Principal.of(actor))
        if not decision:
            raise Forbidden(decision.reason)

        result = await self.db.execute(select(Organization).order_by(Organization.name))
        orgs = [OrganizationResponse.model_validate(o) for o in result.scalars().all()]
        return OrganizationsListResponse(organizations=orgs, total=len(orgs))

    # -----------------------------------------------------------------------
    # Disable / Enable
    # -----------------------------------------------------------------------

    async def disable_organization(self, actor: User, key: str) -> OrganizationStatusResponse:
        """
        Disable an organization and every active user in it.

        Users already inactive keep their state and reason, so a later enable
        does not resurrect manually disabled accounts.
        """
        org = await self._authorize(actor, key)
        track = settings.TRACK_DISABLED_BY_ORG

        # Collected before the cascade deactivates them
        recipients = await self.notifications.organization_admin_ids(org.id)

        change = plan_org_disable(AccountState(is_active=True), track)
        users_updated = await self._cascade(
            org,
            active=False,
            stmt=update(User)
            .where(
                User.organization_id == org.id,
                or_(User.is_active.is_(None), User.is_active.is_(True)),
            )
            .values(**change.values()),
        )

        await self._after_status_change(actor, org, users_updated, track, recipients)
        return OrganizationStatusResponse(
            message="Organization disabled",
            organization_id=org.id,
            users_updated=users_updated,
            degraded=not track,
        )

    async def enable_organization(self, actor: User, key: str) -> OrganizationStatusResponse:
        """
        Enable an organization and re-activate the users it had disabled.

        In degraded mode nobody is re-activated.
        """
        org = await self._authorize(actor, key)
        track = settings.TRACK_DISABLED_BY_ORG

        stmt = None
        if track:
            change = plan_org_enable(AccountState(is_active=False, disabled_by_org=True), track)
            stmt = (
                update(User)
                .where(User.organization_id == org.id, User.disabled_by_org.is_(True))
                .values(**change.values())
            )
        users_updated = await self._cascade(org, active=True, stmt=stmt)

        recipients = await self.notifications.organization_admin_ids(org.id)
        await self._after_status_change(actor, org, users_updated, track, recipients)
        return OrganizationStatusResponse(
            message="Organization enabled",
            organization_id=org.id,
            users_updated=users_updated,
            degraded=not track,
        )

    async def _authorize(self, actor: User, key: str) -> Organization:
        decision = can_manage_organizations(Principal.of(actor))
        if not decision:
            logger.info("Denied organization status change by user_id=%s", actor.id)
            raise Forbidden(decision.reason)
        return await self._get_by_key(key)

    async def _cascade(self, org: Organization, active: bool, stmt: Update | None) -> int:
        """
        Flip the organization flag and run the user update in the request
        transaction. Any store failure rolls everything back.
        """
        try:
            org.is_active = active
            await self.db.flush()

            users_updated = 0
            if stmt is not None:
                result = await self.db.execute(
                    stmt.execution_options(synchronize_session=False)
                )
                users_updated = result.rowcount or 0
            await self.db.refresh(org)
        except SQLAlchemyError as exc:
            logger.exception("Organization cascade failed org_id=%s active=%s", org.id, active)
            await self.db.rollback()
            raise Internal("Failed to update organization users") from exc

        logger.info(
            "Organization org_id=%s set active=%s, users_updated=%s",
            org.id,
            active,
            users_updated,
        )
        return users_updated

    async def _after_status_change(
        self,
        actor: User,
        org: Organization,
        users_updated: int,
        track: bool,
        recipients: list[UUID],
    ) -> None:
        action = "enable_organization" if org.is_active else "disable_organization"
        verb = "enabled" if org.is_active else "disabled"

        await self.audit.record(
            actor,
            action,
            "organizations",
            org.id,
            metadata={"slug": org.slug, "users_updated": users_updated, "degraded": not track},
        )
        await self.notifications.emit_to_users(
            NotificationCreate(
                type=f"organization_{verb}",
                title=f"Organization {verb}",
                body=f"{org.name} was {verb} by an administrator.",
                org_id=org.id,
                entity="organizations",
                entity_id=str(org.id),
                href=f"/organizations/{org.slug}",
                metadata={"users_updated": users_updated},
            ),
            recipients,
            actor_id=actor.id,
        )
