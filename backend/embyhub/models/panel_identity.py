from __future__ import annotations

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from embyhub.core.db import Base
from embyhub.core.rbac import PanelRole
from embyhub.models.common import TimestampMixin


class PanelIdentity(Base, TimestampMixin):
    __tablename__ = "panel_identities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    username: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)

    role: Mapped[str] = mapped_column(String(16), default=PanelRole.reseller.value, nullable=False)  # administrator|reseller

    @property
    def panel_role(self) -> PanelRole | None:
        try:
            return PanelRole(self.role)
        except ValueError:
            return None
