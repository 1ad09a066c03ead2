from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from embyhub.core.db import Base
from embyhub.models.common import TimestampMixin


class SubscriptionEntry(Base, TimestampMixin):
    """Ledger row for one Emby account on one server."""

    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint("account_id", "server_id", name="uq_subscription_account_server"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # upstream Emby user id; no FK, the account lives on the media server
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    server_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("servers.id", ondelete="CASCADE"), index=True, nullable=False
    )

    created_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("panel_identities.id", ondelete="SET NULL"), index=True, nullable=True
    )
    expiration_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True, nullable=True)
