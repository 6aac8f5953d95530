"""Dashboard settings model: one row of JSON preferences per user."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, new_id, utcnow


class DashboardSettings(Base):
    __tablename__ = "dashboard_settings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, index=True)
    layout_mode: Mapped[str] = mapped_column(String(20), default="default", nullable=False)
    theme: Mapped[str] = mapped_column(String(50), default="neutral", nullable=False)
    widgets: Mapped[Any] = mapped_column(JSON, nullable=False)
    layout: Mapped[Any] = mapped_column(JSON, nullable=False)
    appearance: Mapped[Any] = mapped_column(JSON, nullable=False)
    data: Mapped[Any] = mapped_column(JSON, nullable=False)
    grid_layout: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )
