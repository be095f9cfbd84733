"""
FastAPI dependencies for authentication, authorization, and database sessions.
"""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from modality_engine.database import get_db
from modality_engine.kernel.identity.jwt import verify_access_token
from modality_engine.kernel.models.roles import UserRole
from modality_engine.logging_config import actor_id_var
from modality_engine.orchestration.context import Actor
from modality_engine.orchestration.policy import WorkflowPolicy


# Security scheme
security = HTTPBearer(auto_error=False)


DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_actor(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> Actor:
    """
    Resolve the acting user from the bearer token.

    The token is issued by the institution's authorization provider; the
    engine trusts its subject and role and keeps no user table of its own.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_access_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    actor_id_var.set(str(payload.sub))
    return Actor(actor_id=payload.sub, role=payload.role)


CurrentActor = Annotated[Actor, Depends(get_current_actor)]


def get_policy() -> WorkflowPolicy:
    """Workflow policy built from current settings."""
    return WorkflowPolicy.from_settings()


Policy = Annotated[WorkflowPolicy, Depends(get_policy)]


async def require_admin(actor: CurrentActor) -> Actor:
    """Require the current actor to be an admin."""
    if actor.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return actor


AdminActor = Annotated[Actor, Depends(require_admin)]
