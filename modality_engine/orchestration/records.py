"""
Record-level helpers shared by the orchestration services.

Every operation that mutates anything belonging to a modality record goes
through lock_record() and touch(): the row is locked where the database
supports it, and touching it bumps the version counter so a concurrent
writer working from an older copy fails with StaleState.
"""

import uuid
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from modality_engine.kernel.events.event_store import EventStore
from modality_engine.kernel.models.base import utcnow
from modality_engine.kernel.models.event_log import EventType
from modality_engine.kernel.models.modality import ModalityMember, ModalityRecord, ModalityStatus
from modality_engine.logging_config import get_logger
from modality_engine.orchestration.errors import RecordNotFound, StaleState
from modality_engine.orchestration.status_catalog import TERMINAL_STATUSES

logger = get_logger(__name__)

ENTITY_MODALITY = "modality"


async def lock_record(
    session: AsyncSession,
    record_id: uuid.UUID,
    expected_version: Optional[int] = None,
) -> ModalityRecord:
    """Load a record FOR UPDATE, optionally checking the caller's version."""
    result = await session.execute(
        select(ModalityRecord).where(ModalityRecord.id == record_id).with_for_update()
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise RecordNotFound("Modality record not found", record_id=record_id)
    if expected_version is not None and record.version != expected_version:
        raise StaleState(
            f"Record is at version {record.version}, caller expected {expected_version}",
            record_id=record_id,
            current_version=record.version,
        )
    return record


def touch(record: ModalityRecord) -> None:
    """Mark the record modified so the flush bumps its version."""
    record.last_updated_at = utcnow()


async def change_status(
    session: AsyncSession,
    record: ModalityRecord,
    to_status: ModalityStatus,
    *,
    actor_id: Optional[uuid.UUID],
    action: str,
    reason: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> ModalityRecord:
    """Set the status, stamp who/when, and append the status-changed event."""
    from_status = record.status
    now = utcnow()
    record.status = to_status
    record.status_changed_at = now
    record.status_changed_by = actor_id
    record.status_reason = reason
    record.last_updated_at = now

    payload: Dict[str, Any] = {
        "from_status": from_status,
        "to_status": to_status,
        "action": action,
        "member_ids": record.member_ids,
    }
    if reason:
        payload["reason"] = reason
    if extra:
        payload.update(extra)

    await EventStore(session).log(
        event_type=EventType.MODALITY_STATUS_CHANGED,
        entity_type=ENTITY_MODALITY,
        entity_id=record.id,
        user_id=actor_id,
        payload=payload,
    )
    logger.info(
        "Modality status changed",
        extra={
            "record_id": str(record.id),
            "from_status": from_status.value,
            "to_status": to_status.value,
            "action": action,
        },
    )
    return record


async def find_active_record_for(session: AsyncSession, user_id: uuid.UUID) -> Optional[ModalityRecord]:
    """The non-terminal record a student belongs to, if any (DRAFT groups included)."""
    result = await session.execute(
        select(ModalityRecord)
        .join(ModalityMember, ModalityMember.modality_record_id == ModalityRecord.id)
        .where(
            ModalityMember.user_id == user_id,
            ModalityRecord.status.not_in(list(TERMINAL_STATUSES)),
        )
        .limit(1)
    )
    return result.scalar_one_or_none()
