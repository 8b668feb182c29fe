# src/letitout/api/v1/endpoints/vents.py
"""Vent, draft, comment, reaction and report endpoints."""

from fastapi import APIRouter, HTTPException, status

from letitout.api.deps import EngineDep
from letitout.schemas import (
    CommentCreate,
    CommentResponse,
    DraftResponse,
    PublishResponse,
    ReactionSummaryResponse,
    ReactionToggle,
    ReactionToggleResponse,
    ReportCreate,
    VentCreate,
)
from letitout.services.publisher import PublishOutcome

router = APIRouter(tags=["vents"])


def _publish_response(outcome: PublishOutcome) -> PublishResponse:
    return PublishResponse(
        id=outcome.entity_id,
        status=outcome.status.value,
        message=outcome.message,
        remote_id=outcome.remote_id,
    )


@router.post("/vents", response_model=PublishResponse, status_code=status.HTTP_201_CREATED)
async def create_vent(payload: VentCreate, engine: EngineDep) -> PublishResponse:
    """Compose a vent. It is saved locally first, then shared or queued."""
    outcome = await engine.compose_vent(
        payload.text,
        room=payload.room,
        mood_before=payload.mood_before,
        mood_after=payload.mood_after,
        as_draft=payload.as_draft,
    )
    return _publish_response(outcome)


@router.delete("/vents/{vent_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_vent(vent_id: str, engine: EngineDep) -> None:
    if not await engine.delete_vent(vent_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vent not found")


@router.get("/drafts", response_model=list[DraftResponse])
async def list_drafts(engine: EngineDep) -> list[DraftResponse]:
    return [DraftResponse.model_validate(vent) for vent in await engine.list_drafts()]


@router.post("/drafts/{vent_id}/publish", response_model=PublishResponse)
async def publish_draft(vent_id: str, engine: EngineDep) -> PublishResponse:
    """Publish a draft. Publishing an already published vent is a no-op."""
    return _publish_response(await engine.publish_draft(vent_id))


@router.delete("/drafts")
async def clear_drafts(engine: EngineDep) -> dict[str, int]:
    return {"deleted": await engine.clear_drafts()}


@router.get("/vents/{vent_id}/comments", response_model=list[CommentResponse])
async def list_comments(vent_id: str, engine: EngineDep) -> list[CommentResponse]:
    return [CommentResponse.model_validate(c) for c in await engine.load_comments(vent_id)]


@router.post(
    "/vents/{vent_id}/comments",
    response_model=PublishResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(vent_id: str, payload: CommentCreate, engine: EngineDep) -> PublishResponse:
    return _publish_response(await engine.add_comment(vent_id, payload.text))


@router.get("/vents/{vent_id}/reactions", response_model=ReactionSummaryResponse)
async def list_reactions(vent_id: str, engine: EngineDep) -> ReactionSummaryResponse:
    summary = await engine.load_reactions(vent_id)
    return ReactionSummaryResponse(
        vent_id=summary.vent_id,
        counts=summary.counts,
        mine=sorted(summary.mine),
        is_local=summary.is_local,
    )


@router.post("/vents/{vent_id}/reactions", response_model=ReactionToggleResponse)
async def toggle_reaction(
    vent_id: str, payload: ReactionToggle, engine: EngineDep
) -> ReactionToggleResponse:
    """Toggle a support or empathy reaction on a vent."""
    active, outcome = await engine.toggle_reaction(vent_id, payload.type)
    return ReactionToggleResponse(active=active, **_publish_response(outcome).model_dump())


@router.post(
    "/vents/{vent_id}/reports",
    response_model=PublishResponse,
    status_code=status.HTTP_201_CREATED,
)
async def report_vent(vent_id: str, payload: ReportCreate, engine: EngineDep) -> PublishResponse:
    """File a content report against a vent."""
    _, outcome = await engine.report_vent(vent_id, payload.reason, payload.description)
    return _publish_response(outcome)
