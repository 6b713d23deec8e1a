from fastapi import APIRouter, HTTPException, status

from wordswap.schemas.room import RoomRead
from wordswap.services.room_store import RoomSession, room_store

router = APIRouter()


def _room_read(session: RoomSession) -> RoomRead:
    # words stay server-side; only counts are exposed
    return RoomRead(
        room_code=session.id,
        host=session.host,
        players=list(session.players),
        phase=session.phase.value,
        submitted_count=len(session.words),
        finished=list(session.finished),
        failed=list(session.failed),
        created_at=session.created_at,
    )


@router.get("", response_model=list[RoomRead])
def list_rooms() -> list[RoomRead]:
    return [_room_read(session) for session in room_store.list_rooms()]


@router.get("/{room_code}", response_model=RoomRead)
def get_room(room_code: str) -> RoomRead:
    session = room_store.get(room_code)
    if not session:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    return _room_read(session)
