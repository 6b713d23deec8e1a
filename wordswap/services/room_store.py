from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import logging
from threading import Lock

logger = logging.getLogger(__name__)


class RoomPhase(str, Enum):
    FORMING = "forming"
    COLLECTING = "collecting"
    ASSIGNED = "assigned"
    PLAYING = "playing"


@dataclass
class RoomSession:
    id: str
    host: str
    players: list[str] = field(default_factory=list)
    words: dict[str, str] = field(default_factory=dict)
    assigned_words: dict[str, str] = field(default_factory=dict)
    finished: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    phase: RoomPhase = RoomPhase.FORMING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def is_member(self, username: str) -> bool:
        return username in self.players

    def all_submitted(self) -> bool:
        return bool(self.players) and all(player in self.words for player in self.players)


def normalize_room_code(room_code: str | None) -> str:
    return (room_code or "").strip().upper()


class RoomStore:
    """Process-wide map of room code to session.

    Sessions are created lazily on first join and must be deleted as soon as
    their player list empties; lookups of unknown codes return ``None``.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, RoomSession] = {}
        self._lock = Lock()

    def get(self, room_code: str) -> RoomSession | None:
        with self._lock:
            return self._rooms.get(normalize_room_code(room_code))

    def get_or_create(self, room_code: str, creator_username: str) -> tuple[RoomSession, bool]:
        code = normalize_room_code(room_code)
        with self._lock:
            session = self._rooms.get(code)
            if session:
                return session, False
            session = RoomSession(id=code, host=creator_username)
            self._rooms[code] = session
        logger.info("Room %s created by %s", code, creator_username)
        return session, True

    def delete(self, room_code: str) -> bool:
        code = normalize_room_code(room_code)
        with self._lock:
            removed = self._rooms.pop(code, None)
        if removed:
            logger.info("Room %s deleted (empty)", code)
        return removed is not None

    def room_codes_for_user(self, username: str) -> list[str]:
        with self._lock:
            return [code for code, session in self._rooms.items() if username in session.players]

    def list_rooms(self) -> list[RoomSession]:
        with self._lock:
            return list(self._rooms.values())

    def clear(self) -> None:
        with self._lock:
            self._rooms.clear()


room_store = RoomStore()
