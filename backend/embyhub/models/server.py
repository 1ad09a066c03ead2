from sqlalchemy import String, Integer, Boolean
from sqlalchemy.orm import Mapped, mapped_column
from embyhub.core.db import Base
from embyhub.models.common import TimestampMixin

class Server(Base, TimestampMixin):
    __tablename__ = "servers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    url: Mapped[str] = mapped_column(String(255), nullable=False)

    api_key: Mapped[str] = mapped_column(String(255), nullable=False)  # never returned to clients

    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
