"""Arena room API routes."""

from uuid import UUID

from fastapi import APIRouter, status

from src.api.deps import CurrentCaller, OptionalCaller
from src.api.middleware.error_handler import NotFoundError
from src.schemas.room import ArenaCreate, RoomResponse, RoomTokenResponse, TouchResult
from src.services.room_service import RoomService
from src.services.token_service import TokenService

router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.get(
    "/arena",
    response_model=RoomResponse,
    summary="Get the active arena",
    description="Returns the single active arena room.",
)
async def get_arena() -> RoomResponse:
    """Get the active arena room.

    Raises:
        NotFoundError: If no arena has been created yet.
    """
    service = RoomService()
    room = await service.get_arena()
    if room is None:
        raise NotFoundError("No active arena room")
    return RoomResponse(**room)


@router.post(
    "/arena",
    response_model=RoomResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create the arena",
    description="Creates a new arena room and deactivates the previous one. Admins only.",
)
async def create_arena(data: ArenaCreate, caller: CurrentCaller) -> RoomResponse:
    service = RoomService()
    room = await service.create_arena(caller, data.name)
    return RoomResponse(**room)


@router.post(
    "/arena/token",
    response_model=RoomTokenResponse,
    summary="Get an arena token",
    description=(
        "Issues an arena token. Signed-in admins, team members and clients may publish; "
        "everyone else, including anonymous viewers, may only subscribe."
    ),
)
async def issue_arena_token(caller: OptionalCaller) -> RoomTokenResponse:
    room = await RoomService().get_arena()
    service = TokenService()
    token = await service.issue_arena_token(caller, room["name"] if room else None)
    return RoomTokenResponse(**token)


@router.post(
    "/{room_id}/touch",
    response_model=TouchResult,
    summary="Record room activity",
    description="Updates the room's last activity time. Failures are reported as updated=false.",
)
async def touch_room(room_id: UUID, caller: CurrentCaller) -> TouchResult:
    service = RoomService()
    return TouchResult(updated=await service.touch(room_id))
