"""
Incidents Infrastructure Models
===============================

SQLAlchemy ORM models for the incidents module.

Embedded record lists are child tables loaded with `selectin`, ordered by
insertion. The incident row carries a version counter for optimistic
concurrency.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.config import IncidentStatus
from src.infrastructure.database import Base, utcnow


class IncidentModel(Base):
    """
    Database model for Incident aggregate.

    Maps to the 'incidents' table.
    """
    __tablename__ = "incidents"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    severity: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=IncidentStatus.OPEN, index=True
    )

    reported_by: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    reporter_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    assigned_to: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    assignee_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    assigned_team: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    resolution: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # AI annotations
    embedding: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    predicted_category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    predicted_severity: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    category_confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    severity_confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    triage_confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    ai_team: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    ai_powered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    triaged_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    suggested_solutions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    anomaly_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    anomaly_flags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_anomalous: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    status_history: Mapped[List["StatusHistoryModel"]] = relationship(
        back_populates="incident",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="StatusHistoryModel.id"
    )
    comments: Mapped[List["CommentModel"]] = relationship(
        back_populates="incident",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="CommentModel.id"
    )
    attachments: Mapped[List["AttachmentModel"]] = relationship(
        back_populates="incident",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="AttachmentModel.id"
    )
    activity: Mapped[List["ActivityModel"]] = relationship(
        back_populates="incident",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="ActivityModel.id"
    )
    watchers: Mapped[List["WatcherModel"]] = relationship(
        back_populates="incident",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="WatcherModel.created_at"
    )

    __mapper_args__ = {"version_id_col": version}


class StatusHistoryModel(Base):
    __tablename__ = "incident_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    incident_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    from_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    changed_by: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    changed_by_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    incident: Mapped[IncidentModel] = relationship(back_populates="status_history")


class CommentModel(Base):
    __tablename__ = "incident_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    incident_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    author_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    author_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    is_internal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    incident: Mapped[IncidentModel] = relationship(back_populates="comments")


class AttachmentModel(Base):
    __tablename__ = "incident_attachments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    incident_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    url: Mapped[str] = mapped_column(String(500), nullable=False)
    filename: Mapped[str] = mapped_column(String(300), nullable=False)
    uploaded_by: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    incident: Mapped[IncidentModel] = relationship(back_populates="attachments")


class ActivityModel(Base):
    __tablename__ = "incident_activity"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    incident_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    by: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    by_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    meta: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    incident: Mapped[IncidentModel] = relationship(back_populates="activity")


class WatcherModel(Base):
    """One row per (incident, user); the composite key keeps watchers unique."""
    __tablename__ = "incident_watchers"

    incident_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("incidents.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    incident: Mapped[IncidentModel] = relationship(back_populates="watchers")
