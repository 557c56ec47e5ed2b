"""
SQLAlchemy ORM models.

All models imported here to ensure they are registered with Base.metadata.
Import order matters: base models before dependent models.
"""

from lms.models.base import Base, TimestampMixin, UUIDMixin
from lms.models.organization import Organization
from lms.models.user import ORG_SCOPED_ROLES, PRIVILEGED_ROLES, User, UserRole
from lms.models.audit_log import AuditLog
from lms.models.api_event import UnauthApiEvent
from lms.models.notification import Notification, NotificationRecipient

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "Organization",
    "User",
    "UserRole",
    "PRIVILEGED_ROLES",
    "ORG_SCOPED_ROLES",
    "AuditLog",
    "UnauthApiEvent",
    "Notification",
    "NotificationRecipient",
]
