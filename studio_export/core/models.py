"""Canonical transcript model shared by the wire and document pipelines."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Hashable, Optional


class TurnRole(str, Enum):
    """Who authored a turn."""

    USER = "user"
    MODEL = "model"


class TurnSubtype(str, Enum):
    """Content shape of a turn. User turns are always PLAIN."""

    PLAIN = "plain"
    THOUGHT_ONLY = "thought_only"
    REPLY_ONLY = "reply_only"
    THOUGHT_AND_REPLY = "thought_and_reply"


@dataclass
class Turn:
    """One exchange unit, independent of where it was read from.

    Text fields use None for "unset"; an empty string is set-but-empty and is
    kept so that, for example, a blank user turn still clears pending thinking.
    """

    role: TurnRole
    subtype: TurnSubtype = TurnSubtype.PLAIN
    user_text: Optional[str] = None
    thought_text: Optional[str] = None
    response_text: Optional[str] = None

    @classmethod
    def user(cls, text: str) -> "Turn":
        return cls(role=TurnRole.USER, subtype=TurnSubtype.PLAIN, user_text=text)

    @classmethod
    def thought(cls, text: str) -> "Turn":
        return cls(role=TurnRole.MODEL, subtype=TurnSubtype.THOUGHT_ONLY, thought_text=text)

    @classmethod
    def reply(cls, text: str, thought: Optional[str] = None) -> "Turn":
        subtype = TurnSubtype.THOUGHT_AND_REPLY if thought else TurnSubtype.REPLY_ONLY
        return cls(role=TurnRole.MODEL, subtype=subtype, thought_text=thought or None, response_text=text)

    @property
    def is_reply(self) -> bool:
        return self.role is TurnRole.MODEL and self.subtype in (
            TurnSubtype.REPLY_ONLY,
            TurnSubtype.THOUGHT_AND_REPLY,
        )


TranscriptSequence = list[Turn]


class RecordType(str, Enum):
    """Type tag on a collected record; starts UNKNOWN and is refined."""

    UNKNOWN = "unknown"
    USER = "user"
    MODEL = "model"
    MODEL_THOUGHT = "model_thought"
    MODEL_REPLY = "model_reply"
    MODEL_THOUGHT_REPLY = "model_thought_reply"


@dataclass
class CollectedTurn:
    """Partial turn harvested from the document tree.

    Fields are only ever filled in, never cleared, for the life of a session.
    """

    type: RecordType = RecordType.UNKNOWN
    user_text: Optional[str] = None
    thought_text: Optional[str] = None
    response_text: Optional[str] = None

    def refine_type(self) -> None:
        """Derive the model record type from the fields found so far."""
        if self.thought_text and self.response_text:
            self.type = RecordType.MODEL_THOUGHT_REPLY
        elif self.response_text:
            self.type = RecordType.MODEL_REPLY
        elif self.thought_text:
            self.type = RecordType.MODEL_THOUGHT

    def to_turn(self) -> Optional[Turn]:
        """Convert to a canonical Turn, or None if nothing usable was classified."""
        if self.type is RecordType.USER:
            return Turn.user(self.user_text or "")
        if self.type is RecordType.MODEL_THOUGHT and self.thought_text:
            return Turn.thought(self.thought_text)
        if self.type is RecordType.MODEL_REPLY:
            return Turn.reply(self.response_text or "")
        if self.type is RecordType.MODEL_THOUGHT_REPLY:
            return Turn.reply(self.response_text or "", thought=self.thought_text)
        return None


# Keyed by live node identity; never persisted or shared across sessions.
CollectionState = dict[Hashable, CollectedTurn]


@dataclass(frozen=True)
class RenderOptions:
    """Rendering switches for the transcript renderer."""

    include_user: bool = True
    include_model: bool = True
    include_thinking: bool = True
    collapsible_thinking: bool = True

    def normalized(self) -> "RenderOptions":
        """Apply: no model output means no thinking; no thinking means nothing to collapse."""
        include_thinking = self.include_thinking and self.include_model
        return replace(
            self,
            include_thinking=include_thinking,
            collapsible_thinking=self.collapsible_thinking and include_thinking,
        )
