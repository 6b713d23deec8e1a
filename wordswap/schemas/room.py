from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from wordswap.core.config import get_settings

settings = get_settings()


class RoomEventPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    room_code: str = Field(
        alias="roomCode",
        min_length=1,
        max_length=settings.room_code_max_length,
        pattern=r"^[A-Za-z0-9]+$",
    )

    @field_validator("room_code")
    @classmethod
    def uppercase_room_code(cls, value: str) -> str:
        return value.upper()


class PlayerEventPayload(RoomEventPayload):
    username: str = Field(min_length=1, max_length=settings.username_max_length)


class JoinRoomRequest(PlayerEventPayload):
    pass


class LeaveRoomRequest(PlayerEventPayload):
    pass


class StartGameRequest(RoomEventPayload):
    pass


class SubmitWordRequest(PlayerEventPayload):
    # shape is checked by the rules engine so the sender gets the word error
    word: Any = None


class PlayerFinishedRequest(PlayerEventPayload):
    success: bool = False


class RoomRead(BaseModel):
    room_code: str
    host: str
    players: list[str]
    phase: str
    submitted_count: int
    finished: list[str]
    failed: list[str]
    created_at: datetime
