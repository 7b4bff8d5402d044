"""Breakout invitation and breakout room API routes."""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query, Request, status
from fastapi.responses import StreamingResponse

from src.api.deps import CurrentCaller
from src.core.config import get_settings
from src.core.events import get_event_broker, invitee_topic, inviter_topic, room_topic
from src.schemas.breakout import (
    ActiveBreakout,
    CompleteResult,
    ExternalRoomDeleteResult,
    InvitationCreate,
    InvitationCreated,
    InvitationRespond,
    InvitationRespondResult,
    InvitationResponse,
    ParticipantSummary,
    PendingInvitation,
    RoomExistence,
    SentInvitation,
    SweepResult,
)
from src.schemas.room import RoomTokenResponse
from src.services.breakout_service import BreakoutService
from src.services.room_janitor import RoomJanitor
from src.services.token_service import TokenService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/breakouts", tags=["breakouts"])


@router.post(
    "/invitations",
    response_model=InvitationCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Send a breakout invitation",
    description="Invites a client to a breakout room. Only admins and team members may send invitations.",
)
async def create_invitation(data: InvitationCreate, caller: CurrentCaller) -> InvitationCreated:
    """Send a breakout invitation.

    Args:
        data: Invitee and optional room name.
        caller: The authenticated caller.

    Returns:
        InvitationCreated: Invitation ID, room ID and expiry.
    """
    service = BreakoutService()
    created = await service.create_invitation(caller, data.invitee_id, data.room_name)
    return InvitationCreated(**created)


@router.get(
    "/invitations/pending",
    response_model=list[PendingInvitation],
    summary="List my pending invitations",
    description="Pending invitations addressed to the caller, with inviter details and time remaining.",
)
async def list_pending_invitations(caller: CurrentCaller) -> list[PendingInvitation]:
    service = BreakoutService()
    invitations = await service.list_pending_for(caller)
    return [PendingInvitation(**inv) for inv in invitations]


@router.get(
    "/invitations/sent",
    response_model=list[SentInvitation],
    summary="List invitations I sent",
    description="Invitations sent by the caller. Expired and completed ones are hidden unless requested.",
)
async def list_sent_invitations(
    caller: CurrentCaller,
    include_expired: bool = Query(default=False, description="Include expired invitations"),
    include_completed: bool = Query(default=False, description="Include completed invitations"),
) -> list[SentInvitation]:
    service = BreakoutService()
    invitations = await service.list_sent_by(
        caller,
        include_expired=include_expired,
        include_completed=include_completed,
    )
    return [SentInvitation(**inv) for inv in invitations]


async def _invitation_list_stream(
    request: Request,
    topic: str,
    load: Callable[[], Awaitable[list[dict[str, Any]]]],
    max_updates: int | None,
) -> AsyncIterator[str]:
    """Emit a list snapshot on connect, after every change on the topic, and on each poll."""
    poll_seconds = get_settings().room_watch_poll_seconds
    sent = 0
    async with get_event_broker().subscribe(topic) as queue:
        while True:
            yield json.dumps({"invitations": await load()}) + "\n"
            sent += 1
            if max_updates is not None and sent >= max_updates:
                return
            if await request.is_disconnected():
                logger.debug("Watcher on %s disconnected", topic)
                return
            try:
                await asyncio.wait_for(queue.get(), timeout=poll_seconds)
            except asyncio.TimeoutError:
                pass


@router.get(
    "/invitations/pending/watch",
    summary="Watch my pending invitations",
    description=(
        "Streams newline-delimited JSON snapshots of the caller's pending invitations: once on "
        "connect, after every change to an invitation addressed to the caller, and periodically "
        "so time remaining stays current."
    ),
    response_class=StreamingResponse,
)
async def watch_pending_invitations(
    request: Request,
    caller: CurrentCaller,
    max_updates: int | None = Query(default=None, ge=1, description="Close the stream after this many snapshots"),
) -> StreamingResponse:
    service = BreakoutService()

    async def load() -> list[dict[str, Any]]:
        invitations = await service.list_pending_for(caller)
        return [PendingInvitation(**inv).model_dump(mode="json") for inv in invitations]

    stream = _invitation_list_stream(request, invitee_topic(str(caller.profile_id)), load, max_updates)
    return StreamingResponse(stream, media_type="application/x-ndjson")


@router.get(
    "/invitations/sent/watch",
    summary="Watch invitations I sent",
    description=(
        "Streams newline-delimited JSON snapshots of the caller's sent invitations, "
        "with the same filters as the sent list."
    ),
    response_class=StreamingResponse,
)
async def watch_sent_invitations(
    request: Request,
    caller: CurrentCaller,
    include_expired: bool = Query(default=False, description="Include expired invitations"),
    include_completed: bool = Query(default=False, description="Include completed invitations"),
    max_updates: int | None = Query(default=None, ge=1, description="Close the stream after this many snapshots"),
) -> StreamingResponse:
    service = BreakoutService()

    async def load() -> list[dict[str, Any]]:
        invitations = await service.list_sent_by(
            caller,
            include_expired=include_expired,
            include_completed=include_completed,
        )
        return [SentInvitation(**inv).model_dump(mode="json") for inv in invitations]

    stream = _invitation_list_stream(request, inviter_topic(str(caller.profile_id)), load, max_updates)
    return StreamingResponse(stream, media_type="application/x-ndjson")


@router.post(
    "/invitations/sweep",
    response_model=SweepResult,
    summary="Expire stale invitations",
    description="Marks pending invitations past their expiry as expired. Safe to call repeatedly.",
)
async def sweep_expired_invitations(caller: CurrentCaller) -> SweepResult:
    service = BreakoutService()
    result = await service.sweep_expired()
    return SweepResult(**result)


@router.post(
    "/invitations/{invitation_id}/respond",
    response_model=InvitationRespondResult,
    summary="Accept or decline an invitation",
    description="Only the invitee may respond, and only while the invitation is pending. Declining deletes it.",
)
async def respond_to_invitation(
    invitation_id: UUID,
    data: InvitationRespond,
    caller: CurrentCaller,
) -> InvitationRespondResult:
    """Answer a pending invitation.

    Raises:
        NotFoundError: 404 if the invitation does not exist.
        AuthorizationError: 403 if the caller is not the invitee.
        AlreadyHandledError: 409 if the invitation is no longer pending.
    """
    service = BreakoutService()
    result = await service.respond(caller, invitation_id, data.response)
    return InvitationRespondResult(**result)


@router.post(
    "/invitations/{invitation_id}/ongoing",
    response_model=InvitationResponse,
    summary="Mark a breakout as ongoing",
    description="Called when a participant joins the breakout room. Repeated calls are a no-op.",
)
async def mark_invitation_ongoing(invitation_id: UUID, caller: CurrentCaller) -> InvitationResponse:
    service = BreakoutService()
    invitation = await service.mark_ongoing(caller, invitation_id)
    return InvitationResponse(**invitation)


@router.get(
    "/active",
    response_model=list[ActiveBreakout],
    summary="List my active breakouts",
    description="Accepted or ongoing breakouts the caller takes part in.",
)
async def list_active_breakouts(caller: CurrentCaller) -> list[ActiveBreakout]:
    service = BreakoutService()
    breakouts = await service.list_active_for(caller)
    return [ActiveBreakout(**b) for b in breakouts]


@router.get(
    "/rooms/{room_id}/exists",
    response_model=RoomExistence,
    summary="Check whether a breakout is still running",
    description="Returns false once no invitation references the room, meaning the session ended.",
)
async def breakout_room_exists(room_id: str, caller: CurrentCaller) -> RoomExistence:
    service = BreakoutService()
    return RoomExistence(room_id=room_id, exists=await service.exists_for_room(room_id))


@router.get(
    "/rooms/{room_id}/watch",
    summary="Watch a breakout room",
    description=(
        "Streams newline-delimited JSON with the room's existence state: once on connect, "
        "after every invitation change for the room, and periodically. The stream ends "
        "after reporting that the room no longer exists."
    ),
    response_class=StreamingResponse,
)
async def watch_breakout_room(room_id: str, request: Request, caller: CurrentCaller) -> StreamingResponse:
    service = BreakoutService()
    broker = get_event_broker()
    poll_seconds = get_settings().room_watch_poll_seconds

    async def room_state_stream() -> AsyncIterator[str]:
        async with broker.subscribe(room_topic(room_id)) as queue:
            exists = await service.exists_for_room(room_id)
            yield json.dumps({"room_id": room_id, "exists": exists}) + "\n"

            while exists:
                if await request.is_disconnected():
                    logger.debug("Watcher for room %s disconnected", room_id)
                    return
                try:
                    await asyncio.wait_for(queue.get(), timeout=poll_seconds)
                except asyncio.TimeoutError:
                    pass

                exists = await service.exists_for_room(room_id)
                yield json.dumps({"room_id": room_id, "exists": exists}) + "\n"

    return StreamingResponse(room_state_stream(), media_type="application/x-ndjson")


@router.get(
    "/rooms/{room_id}/participants",
    response_model=list[ParticipantSummary],
    summary="List breakout participants",
    description="Distinct inviters and invitees of the room's accepted or ongoing invitations.",
)
async def list_breakout_participants(room_id: str, caller: CurrentCaller) -> list[ParticipantSummary]:
    service = BreakoutService()
    participants = await service.get_room_participants(room_id)
    return [ParticipantSummary(**p) for p in participants]


@router.post(
    "/rooms/{room_id}/token",
    response_model=RoomTokenResponse,
    summary="Get a breakout room token",
    description="Issues a publish/subscribe token for callers holding a pending, accepted or ongoing invitation.",
)
async def issue_breakout_token(room_id: str, caller: CurrentCaller) -> RoomTokenResponse:
    """Issue a breakout room token.

    Raises:
        NotInvitedError: 403 if the caller has no invitation for the room.
        ConfigurationError: 500 if LiveKit is not configured.
    """
    service = TokenService()
    token = await service.issue_breakout_token(caller, room_id)
    return RoomTokenResponse(**token)


@router.post(
    "/rooms/{room_id}/complete",
    response_model=CompleteResult,
    summary="End a breakout for everyone",
    description=(
        "Deletes every accepted or ongoing invitation for the room, then deletes the "
        "provider-side room. Provider failures are reported, not raised."
    ),
)
async def complete_breakout_room(room_id: str, caller: CurrentCaller) -> CompleteResult:
    """End a breakout room.

    Raises:
        NoActiveSessionError: 409 if nothing is live in the room.
        AuthorizationError: 403 if the caller does not participate.
    """
    service = BreakoutService()
    result = await service.complete_for_room(caller, room_id)

    cleanup = await RoomJanitor().delete_external_room(room_id)

    return CompleteResult(
        deleted_count=result["deleted_count"],
        external_room_deleted=cleanup["success"],
        external_error=cleanup.get("error"),
    )


@router.delete(
    "/rooms/{room_id}/external",
    response_model=ExternalRoomDeleteResult,
    summary="Delete the provider-side room",
    description="Deletes the video provider's room resource. Failures are returned in the body.",
)
async def delete_external_room(room_id: str, caller: CurrentCaller) -> ExternalRoomDeleteResult:
    result = await RoomJanitor().delete_external_room(room_id)
    return ExternalRoomDeleteResult(**result)
