"""
Routing Infrastructure Models
=============================
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database import Base, utcnow


class RoutingRuleModel(Base):
    """
    Database model for RoutingRule entity.

    Maps to the 'routing_rules' table.
    """
    __tablename__ = "routing_rules"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    assigned_team: Mapped[str] = mapped_column(String(200), nullable=False)
    assigned_to: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    priority: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, default=0)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
