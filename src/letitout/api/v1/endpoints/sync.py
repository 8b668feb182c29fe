# src/letitout/api/v1/endpoints/sync.py
"""Sync status, queue flush, identity and data-reset endpoints."""

from fastapi import APIRouter, status

from letitout.api.deps import EngineDep
from letitout.schemas import FlushResponse, IdentityResponse, SyncStatusResponse

router = APIRouter(tags=["sync"])


@router.post("/sync/flush", response_model=FlushResponse)
async def flush_queue(engine: EngineDep) -> FlushResponse:
    """Probe the backend and replay queued actions now."""
    report = await engine.flush()
    return FlushResponse(
        replayed=report.replayed,
        rejected=report.rejected,
        blocked_action_id=report.blocked_action_id,
        offline=report.offline,
        completed=report.completed,
    )


@router.get("/sync/status", response_model=SyncStatusResponse)
async def sync_status(engine: EngineDep) -> SyncStatusResponse:
    return SyncStatusResponse(
        connectivity=engine.connectivity.state.value,
        circuit=engine.gateway.circuit_state.value,
        pending_actions=await engine.store.count_pending_actions(),
        rejected_actions=len(await engine.store.get_rejected_actions()),
        flushing=engine.replayer.flushing,
    )


@router.get("/identity", response_model=IdentityResponse)
async def identity(engine: EngineDep) -> IdentityResponse:
    return IdentityResponse(
        device_id=await engine.identity.get_device_id(),
        anonymous_handle=await engine.identity.get_handle(),
    )


@router.delete("/data", status_code=status.HTTP_204_NO_CONTENT)
async def clear_all_data(engine: EngineDep) -> None:
    """Erase every vent, mood log, moderation entry and queued action on this device."""
    await engine.clear_all()
