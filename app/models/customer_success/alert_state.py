"""
Alert Lifecycle Models

Persisted lifecycle state for computed alerts:
- Status, acknowledgement, snooze and resolution fields
- Owner reassignment
- Append-only notes
- Action log of applied updates

Alert content itself is never stored; it is recomputed every pass and
matched to this state by its stable id.
"""

from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Enum as SQLEnum, JSON
from sqlalchemy.orm import relationship
from app.database import Base


class AlertState(Base):
    """
    Lifecycle state for one alert id.
    """

    __tablename__ = "cs_alert_states"

    alert_id = Column(String(200), primary_key=True)

    status = Column(
        SQLEnum(
            "open",
            "acknowledged",
            "in_progress",
            "resolved",
            "snoozed",
            name="cs_alert_status_enum",
        ),
        default="open",
        nullable=False,
    )

    # Acknowledgement
    acknowledged_at = Column(DateTime(timezone=True))
    acknowledged_by = Column(String(200))

    # Snooze
    snoozed_until = Column(DateTime(timezone=True))
    snooze_reason = Column(Text)

    # Resolution
    resolved_at = Column(DateTime(timezone=True))
    resolved_by = Column(String(200))
    outcome = Column(JSON)  # {"result": "success", "notes": ..., "resolvedBy": ...}

    # Reassignment
    owner_id = Column(String(200))
    owner_name = Column(String(200))

    # Timestamps
    first_seen_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True))

    # Relationships
    notes = relationship(
        "AlertStateNote",
        back_populates="alert_state",
        cascade="all, delete-orphan",
        order_by="AlertStateNote.created_at",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<AlertState alert_id={self.alert_id} status={self.status}>"


class AlertStateNote(Base):
    """
    Free-text note on an alert.
    """

    __tablename__ = "cs_alert_notes"

    id = Column(String(64), primary_key=True)
    alert_id = Column(String(200), ForeignKey("cs_alert_states.alert_id"), nullable=False, index=True)

    content = Column(Text, nullable=False)
    created_by = Column(String(200), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    alert_state = relationship("AlertState", back_populates="notes")

    def __repr__(self):
        return f"<AlertStateNote id={self.id} alert_id={self.alert_id}>"


class AlertActionLogEntry(Base):
    """
    Audit trail of lifecycle actions on an alert.
    """

    __tablename__ = "cs_alert_action_log"

    id = Column(String(64), primary_key=True)
    alert_id = Column(String(200), nullable=False, index=True)

    action = Column(
        SQLEnum(
            "acknowledged",
            "snoozed",
            "resolved",
            "assigned",
            "note_added",
            "reopened",
            "status_changed",
            name="cs_alert_action_enum",
        ),
        nullable=False,
    )
    actor = Column(String(200))
    details = Column(JSON)

    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self):
        return f"<AlertActionLogEntry alert_id={self.alert_id} action={self.action}>"
