"""DTOs for the playback session manager."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from ...domain.playback.entities import MediaHandle
from ...domain.shared.types import PositionMs


class ControlStatus(Enum):
    OK = "ok"
    NO_OP = "no_op"
    NO_ACTIVE_SESSION = "no_active_session"
    NOT_SKIPPABLE = "not_skippable"
    NO_NEXT_ITEM = "no_next_item"
    SUPERSEDED = "superseded"


class ControlResult(BaseModel):
    status: ControlStatus
    position_ms: PositionMs = 0
    media: MediaHandle | None = None

    @property
    def success(self) -> bool:
        return self.status in {ControlStatus.OK, ControlStatus.NO_OP}

    @classmethod
    def ok(cls, position_ms: int = 0, media: MediaHandle | None = None) -> ControlResult:
        return cls(status=ControlStatus.OK, position_ms=position_ms, media=media)

    @classmethod
    def no_op(cls, position_ms: int = 0) -> ControlResult:
        return cls(status=ControlStatus.NO_OP, position_ms=position_ms)

    @classmethod
    def no_active_session(cls) -> ControlResult:
        return cls(status=ControlStatus.NO_ACTIVE_SESSION)
