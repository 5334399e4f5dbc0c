from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from cinematic.api.deps import get_presence
from cinematic.api.services.presence import PresenceTracker

router = APIRouter(prefix="/api/online")


class HeartbeatIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str | None = Field(default=None, alias="sessionId", max_length=200)


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/heartbeat")
def heartbeat(
    request: Request,
    body: HeartbeatIn | None = Body(None),
    presence: PresenceTracker = Depends(get_presence),
) -> dict[str, Any]:
    session_id = (body.session_id if body else None) or _client_key(request)
    return {"success": True, "online": presence.heartbeat(session_id)}


@router.get("/count")
def count(presence: PresenceTracker = Depends(get_presence)) -> dict[str, Any]:
    return {"online": presence.count()}
