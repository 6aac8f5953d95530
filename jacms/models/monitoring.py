"""SystemHealthMetric and SecurityEvent read models for the dashboard."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, new_id, utcnow


class SystemHealthMetric(Base):
    __tablename__ = "system_health_metrics"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False, index=True
    )
    overall_score: Mapped[int] = mapped_column(Integer, nullable=False)
    performance_score: Mapped[int] = mapped_column(Integer, default=100, nullable=False)
    security_score: Mapped[int] = mapped_column(Integer, default=100, nullable=False)
    stability_score: Mapped[int] = mapped_column(Integer, default=100, nullable=False)
    active_issues_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    critical_issues_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class SecurityEvent(Base):
    __tablename__ = "security_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False, index=True)  # LOW, MEDIUM, HIGH, CRITICAL
    source: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    is_resolved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False, index=True
    )
