"""Workflow event log."""

from modality_engine.kernel.events.event_store import EventStore

__all__ = ["EventStore"]
