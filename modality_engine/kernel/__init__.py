"""
Stable Kernel Layer

Foundational components the orchestration layer builds on:
- Persistence models (modality records, documents, panels, invitations)
- Append-only workflow event log
- Actor identity tokens

Invariants:
- Every workflow mutation is logged in the same transaction that commits it
- Modality records are never deleted
"""

from modality_engine.kernel.models import (
    EventLog,
    EventType,
    ModalityRecord,
    ModalityStatus,
    UserRole,
)

__all__ = [
    "EventLog",
    "EventType",
    "ModalityRecord",
    "ModalityStatus",
    "UserRole",
]
