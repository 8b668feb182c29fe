# src/letitout/api/v1/endpoints/moderation.py
"""Device-side moderation endpoints."""

from fastapi import APIRouter, HTTPException, status

from letitout.api.deps import EngineDep
from letitout.schemas import BlockUserRequest, HidePostRequest

router = APIRouter(prefix="/moderation", tags=["moderation"])


@router.post("/hidden", status_code=status.HTTP_204_NO_CONTENT)
async def hide_post(payload: HidePostRequest, engine: EngineDep) -> None:
    """Hide a vent from every feed on this device."""
    await engine.hide_post(payload.vent_id)


@router.post("/blocked", status_code=status.HTTP_204_NO_CONTENT)
async def block_user(payload: BlockUserRequest, engine: EngineDep) -> None:
    """Hide every vent and comment written under a handle."""
    await engine.block_user(payload.handle)


@router.delete("/blocked/{handle}", status_code=status.HTTP_204_NO_CONTENT)
async def unblock_user(handle: str, engine: EngineDep) -> None:
    if not await engine.unblock_user(handle):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Handle not blocked")


@router.delete("/hidden/{vent_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unhide_post(vent_id: str, engine: EngineDep) -> None:
    if not await engine.unhide_post(vent_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vent not hidden")
