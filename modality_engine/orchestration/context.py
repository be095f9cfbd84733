"""Caller context passed into every engine operation."""

import uuid
from dataclasses import dataclass

from modality_engine.kernel.models.roles import UserRole


@dataclass(frozen=True)
class Actor:
    """Who is acting and in which role, as vouched for by the authorization provider."""

    actor_id: uuid.UUID
    role: UserRole
