"""
Alert Lifecycle Store

Keeps the human-driven state of alerts (status, acknowledgement, snooze,
resolution, reassignment, notes) across recomputation passes. Alerts are
recomputed from scratch every pass; their stored state is looked up by the
stable alert id and merged back in.

Two backends share one async interface:
- InMemoryAlertStateStore: process-local, created once at service start
- SqlAlchemyAlertStateStore: one transaction per upsert

Updates are a pure merge: only fields present in the request overwrite
stored values and notes are appended, never replaced. Unknown alert ids
are created on first update.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.exceptions import AlertStoreError, ErrorCode
from app.models.customer_success.alert_state import AlertActionLogEntry, AlertState, AlertStateNote
from app.schemas.customer_success.alert import (
    Alert,
    AlertAction,
    AlertActionLog,
    AlertNote,
    AlertOutcome,
    AlertStateUpdate,
    AlertStatus,
    AlertUpdateResult,
    StoredAlertState,
)

logger = logging.getLogger(__name__)


# Update field -> stored field
UPDATE_FIELD_MAP = {
    "status": "status",
    "acknowledged_at": "acknowledged_at",
    "acknowledged_by": "acknowledged_by",
    "snoozed_until": "snoozed_until",
    "snooze_reason": "snooze_reason",
    "resolved_at": "resolved_at",
    "resolved_by": "resolved_by",
    "outcome": "outcome",
    "assigned_to": "owner_id",
    "assigned_to_name": "owner_name",
}

# Stored fields copied onto a recomputed alert
LIFECYCLE_FIELDS = (
    "status",
    "acknowledged_at",
    "acknowledged_by",
    "snoozed_until",
    "snooze_reason",
    "resolved_at",
    "resolved_by",
    "outcome",
    "owner_id",
    "owner_name",
)

# Hidden from the merged alert while the stored status is open
HANDLING_FIELDS = frozenset(
    {
        "acknowledged_at",
        "acknowledged_by",
        "snoozed_until",
        "snooze_reason",
        "resolved_at",
        "resolved_by",
        "outcome",
    }
)

STATUS_ACTIONS = {
    AlertStatus.ACKNOWLEDGED: AlertAction.ACKNOWLEDGED,
    AlertStatus.SNOOZED: AlertAction.SNOOZED,
    AlertStatus.RESOLVED: AlertAction.RESOLVED,
}

REOPENABLE_STATUSES = {AlertStatus.ACKNOWLEDGED, AlertStatus.SNOOZED, AlertStatus.RESOLVED}


def _wire_name(field_name: str) -> str:
    return StoredAlertState.model_fields[field_name].alias or field_name


def _update_actor(update: AlertStateUpdate) -> Optional[str]:
    if update.resolved_by:
        return update.resolved_by
    if update.acknowledged_by:
        return update.acknowledged_by
    if update.note:
        return update.note.created_by
    return None


def _action_details(update: AlertStateUpdate) -> dict[str, Any]:
    return update.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"note"})


def apply_update(
    existing: StoredAlertState,
    update: AlertStateUpdate,
    now: datetime,
) -> tuple[StoredAlertState, list[str], Optional[AlertNote], list[AlertActionLog]]:
    """
    Merge a partial update into stored state.

    Returns:
        (new state, changed field names, created note, action log entries)
    """
    changes: dict[str, Any] = {}
    updated_fields: list[str] = []

    for update_field, state_field in UPDATE_FIELD_MAP.items():
        value = getattr(update, update_field)
        if value is None:
            continue
        if getattr(existing, state_field) != value:
            changes[state_field] = value
            updated_fields.append(_wire_name(state_field))

    note = None
    if update.note is not None:
        note = AlertNote(
            id=f"note-{uuid4().hex}",
            alert_id=existing.alert_id,
            content=update.note.content,
            created_by=update.note.created_by,
            created_at=now,
        )
        changes["notes"] = [*existing.notes, note]
        updated_fields.append("notes")

    changes["updated_at"] = now
    new_state = existing.model_copy(update=changes)

    actor = _update_actor(update)
    details = _action_details(update)
    actions = []

    def log(action: AlertAction, extra: Optional[dict[str, Any]] = None):
        actions.append(
            AlertActionLog(
                id=f"log-{uuid4().hex}",
                alert_id=existing.alert_id,
                action=action,
                actor=actor,
                timestamp=now,
                details=extra if extra is not None else details,
            )
        )

    if "status" in changes:
        new_status = changes["status"]
        if new_status in STATUS_ACTIONS:
            log(STATUS_ACTIONS[new_status])
        elif new_status == AlertStatus.OPEN and existing.status in REOPENABLE_STATUSES:
            log(AlertAction.REOPENED, {"from": existing.status.value})
        else:
            log(AlertAction.STATUS_CHANGED, {"from": existing.status.value, "to": new_status.value})

    if "owner_id" in changes or "owner_name" in changes:
        log(AlertAction.ASSIGNED, {"assigneeId": new_state.owner_id, "assigneeName": new_state.owner_name})

    if note is not None:
        log(AlertAction.NOTE_ADDED, {"noteId": note.id})

    return new_state, updated_fields, note, actions


def merge_alert_state(alert: Alert, state: Optional[StoredAlertState]) -> Alert:
    """
    Overlay stored lifecycle state on a freshly computed alert.

    createdAt becomes the first time the alert was seen, and the SLA
    deadline keeps its span from that anchor. A reopened alert shows no
    acknowledgement, snooze or resolution.
    """
    if state is None:
        return alert

    reopened = state.status == AlertStatus.OPEN
    update: dict[str, Any] = {}
    for field in LIFECYCLE_FIELDS:
        if reopened and field in HANDLING_FIELDS:
            continue
        value = getattr(state, field)
        if value is not None:
            update[field] = value
    update["notes"] = list(state.notes)

    if state.first_seen_at and state.first_seen_at != alert.created_at:
        update["created_at"] = state.first_seen_at
        if alert.sla_deadline:
            update["sla_deadline"] = state.first_seen_at + (alert.sla_deadline - alert.created_at)

    return alert.model_copy(update=update)


class AlertStateStore(ABC):
    """Persistence for alert lifecycle state, keyed by alert id."""

    @abstractmethod
    async def get(self, alert_id: str) -> Optional[StoredAlertState]:
        ...

    @abstractmethod
    async def upsert(
        self,
        alert_id: str,
        update: AlertStateUpdate,
        now: Optional[datetime] = None,
    ) -> AlertUpdateResult:
        ...

    @abstractmethod
    async def mark_seen(self, alert_id: str, seen_at: datetime) -> StoredAlertState:
        """Record first-seen time if the alert is new; return its state."""
        ...

    @abstractmethod
    async def action_log(self, alert_id: str) -> list[AlertActionLog]:
        ...


# ============================================
# In-memory backend
# ============================================


class InMemoryAlertStateStore(AlertStateStore):
    """
    Process-local store.

    Upserts for the same alert id are serialized; different ids proceed
    concurrently.
    """

    def __init__(self):
        self._states: dict[str, StoredAlertState] = {}
        self._logs: list[AlertActionLog] = []
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get(self, alert_id: str) -> Optional[StoredAlertState]:
        state = self._states.get(alert_id)
        return state.model_copy(deep=True) if state else None

    async def upsert(
        self,
        alert_id: str,
        update: AlertStateUpdate,
        now: Optional[datetime] = None,
    ) -> AlertUpdateResult:
        now = now or datetime.now(timezone.utc)
        async with self._locks[alert_id]:
            existing = self._states.get(alert_id) or StoredAlertState(alert_id=alert_id)
            new_state, updated_fields, note, actions = apply_update(existing, update, now)
            self._states[alert_id] = new_state
            self._logs.extend(actions)

        if updated_fields:
            logger.info("Alert %s updated: %s", alert_id, ", ".join(updated_fields))

        return AlertUpdateResult(
            alert_id=alert_id,
            updated_fields=updated_fields,
            note=note,
            state=new_state.model_copy(deep=True),
        )

    async def mark_seen(self, alert_id: str, seen_at: datetime) -> StoredAlertState:
        async with self._locks[alert_id]:
            state = self._states.get(alert_id)
            if state is None:
                state = StoredAlertState(alert_id=alert_id, first_seen_at=seen_at)
            elif state.first_seen_at is None:
                state = state.model_copy(update={"first_seen_at": seen_at})
            else:
                return state.model_copy(deep=True)
            self._states[alert_id] = state
        return state.model_copy(deep=True)

    async def action_log(self, alert_id: str) -> list[AlertActionLog]:
        return [entry for entry in self._logs if entry.alert_id == alert_id]


# ============================================
# Database backend
# ============================================


def _to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; everything is stored as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _row_to_state(row: AlertState) -> StoredAlertState:
    return StoredAlertState(
        alert_id=row.alert_id,
        status=AlertStatus(row.status),
        acknowledged_at=_to_utc(row.acknowledged_at),
        acknowledged_by=row.acknowledged_by,
        snoozed_until=_to_utc(row.snoozed_until),
        snooze_reason=row.snooze_reason,
        resolved_at=_to_utc(row.resolved_at),
        resolved_by=row.resolved_by,
        outcome=AlertOutcome.model_validate(row.outcome) if row.outcome else None,
        owner_id=row.owner_id,
        owner_name=row.owner_name,
        notes=[
            AlertNote(
                id=note.id,
                alert_id=note.alert_id,
                content=note.content,
                created_by=note.created_by,
                created_at=_to_utc(note.created_at),
            )
            for note in row.notes
        ],
        first_seen_at=_to_utc(row.first_seen_at),
        updated_at=_to_utc(row.updated_at),
    )


def _copy_state_to_row(state: StoredAlertState, row: AlertState):
    row.status = state.status.value
    row.acknowledged_at = _to_utc(state.acknowledged_at)
    row.acknowledged_by = state.acknowledged_by
    row.snoozed_until = _to_utc(state.snoozed_until)
    row.snooze_reason = state.snooze_reason
    row.resolved_at = _to_utc(state.resolved_at)
    row.resolved_by = state.resolved_by
    row.outcome = state.outcome.model_dump(mode="json", by_alias=True) if state.outcome else None
    row.owner_id = state.owner_id
    row.owner_name = state.owner_name
    row.first_seen_at = _to_utc(state.first_seen_at)
    row.updated_at = _to_utc(state.updated_at)


async def _lock_or_create(session: AsyncSession, alert_id: str, first_seen_at: Optional[datetime] = None) -> AlertState:
    """
    Load the row for alert_id under a write lock, creating it if absent.

    The insert is a no-op when another transaction created the row first,
    so concurrent first writes to one id both land on the same row.
    """
    dialect = postgresql if session.get_bind().dialect.name == "postgresql" else sqlite
    await session.execute(
        dialect.insert(AlertState)
        .values(alert_id=alert_id, status=AlertStatus.OPEN.value, first_seen_at=_to_utc(first_seen_at))
        .on_conflict_do_nothing(index_elements=["alert_id"])
    )
    return await session.get(AlertState, alert_id, with_for_update=True, populate_existing=True)


class SqlAlchemyAlertStateStore(AlertStateStore):
    """Store backed by the cs_alert_* tables. One transaction per call."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def get(self, alert_id: str) -> Optional[StoredAlertState]:
        try:
            async with self._session_maker() as session:
                row = await session.get(AlertState, alert_id)
                return _row_to_state(row) if row else None
        except SQLAlchemyError as e:
            logger.error("Failed to read alert state %s: %s", alert_id, e)
            raise AlertStoreError(
                alert_id, f"Failed to read alert state: {e}", code=ErrorCode.STORE_READ_FAILED
            ) from e

    async def upsert(
        self,
        alert_id: str,
        update: AlertStateUpdate,
        now: Optional[datetime] = None,
    ) -> AlertUpdateResult:
        now = now or datetime.now(timezone.utc)
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    row = await _lock_or_create(session, alert_id)
                    existing = _row_to_state(row)

                    new_state, updated_fields, note, actions = apply_update(existing, update, now)
                    _copy_state_to_row(new_state, row)

                    if note is not None:
                        session.add(
                            AlertStateNote(
                                id=note.id,
                                alert_id=alert_id,
                                content=note.content,
                                created_by=note.created_by,
                                created_at=_to_utc(note.created_at),
                            )
                        )
                    for entry in actions:
                        session.add(
                            AlertActionLogEntry(
                                id=entry.id,
                                alert_id=alert_id,
                                action=entry.action.value,
                                actor=entry.actor,
                                details=entry.details,
                                timestamp=_to_utc(entry.timestamp),
                            )
                        )
        except SQLAlchemyError as e:
            logger.error("Failed to update alert state %s: %s", alert_id, e)
            raise AlertStoreError(alert_id, f"Failed to update alert state: {e}") from e

        if updated_fields:
            logger.info("Alert %s updated: %s", alert_id, ", ".join(updated_fields))

        return AlertUpdateResult(
            alert_id=alert_id,
            updated_fields=updated_fields,
            note=note,
            state=new_state,
        )

    async def mark_seen(self, alert_id: str, seen_at: datetime) -> StoredAlertState:
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    row = await _lock_or_create(session, alert_id, first_seen_at=seen_at)
                    if row.first_seen_at is None:
                        row.first_seen_at = _to_utc(seen_at)
                    return _row_to_state(row)
        except SQLAlchemyError as e:
            logger.error("Failed to record alert %s: %s", alert_id, e)
            raise AlertStoreError(alert_id, f"Failed to record alert: {e}") from e

    async def action_log(self, alert_id: str) -> list[AlertActionLog]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    select(AlertActionLogEntry)
                    .where(AlertActionLogEntry.alert_id == alert_id)
                    .order_by(AlertActionLogEntry.timestamp)
                )
                return [
                    AlertActionLog(
                        id=entry.id,
                        alert_id=entry.alert_id,
                        action=AlertAction(entry.action),
                        actor=entry.actor,
                        timestamp=_to_utc(entry.timestamp),
                        details=entry.details or {},
                    )
                    for entry in result.scalars().all()
                ]
        except SQLAlchemyError as e:
            logger.error("Failed to read action log for %s: %s", alert_id, e)
            raise AlertStoreError(
                alert_id, f"Failed to read action log: {e}", code=ErrorCode.STORE_READ_FAILED
            ) from e


def get_alert_store(backend: Optional[str] = None) -> AlertStateStore:
    """Build the store selected by ALERT_STORE_BACKEND."""
    from app.config import settings

    backend = backend or settings.ALERT_STORE_BACKEND
    if backend == "database":
        from app.database import get_session_maker

        return SqlAlchemyAlertStateStore(get_session_maker())
    return InMemoryAlertStateStore()
