"""
UnauthApiEvent ORM model.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from lms.models.base import Base, JSONType, UUIDMixin


class UnauthApiEvent(Base, UUIDMixin):
    """
    API outcome that cannot be attributed to an authenticated caller.

    Attributed outcomes go to audit_logs as api_success/api_error instead.
    """

    __tablename__ = "unauth_api_events"

    outcome: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[int] = mapped_column(Integer, nullable=False)
    method: Mapped[str] = mapped_column(String(10), nullable=False)
    path: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    query: Mapped[str] = mapped_column(Text, nullable=False, default="")
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    public_message: Mapped[str] = mapped_column(Text, nullable=False)
    internal_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<UnauthApiEvent {self.method} {self.path} status={self.status}>"
