"""Locate and decode conversation turns inside a captured wire payload.

The payload is an undocumented nested array. A turn is recognised purely by
structural sniffing: it is an array that contains a bare "user" or "model"
marker. Model turns carry two positional flags (see constants) that tell a
reasoning turn from a response turn. All schema knowledge is kept in this
module so a format change touches one place.
"""

from __future__ import annotations

import json
from typing import Optional, Sequence

from studio_export.constants import (
    RESERVED_MARKERS,
    RESPONSE_FLAG_INDEX,
    ROLE_MODEL,
    ROLE_USER,
    TEXT_SCAN_MAX_DEPTH,
    TEXT_SCAN_WIDTH,
    THINKING_FLAG_INDEX,
    TITLE_INDEX,
    TURN_LIST_MAX_DEPTH,
    TURN_SNIFF_WIDTH,
    XSSI_PREFIX,
)
from studio_export.core.errors import MalformedPayloadError, TurnListNotFoundError
from studio_export.core.models import TranscriptSequence, Turn, TurnRole, TurnSubtype
from studio_export.logging_config import get_logger

logger = get_logger(__name__)

JsonValue = object


def is_turn(value: JsonValue) -> bool:
    """Return True if value looks like a turn record."""
    return isinstance(value, list) and (ROLE_USER in value or ROLE_MODEL in value)


def _find_turn_list(node: JsonValue, depth: int) -> Optional[list[JsonValue]]:
    if depth > TURN_LIST_MAX_DEPTH or not isinstance(node, list):
        return None

    if any(is_turn(child) for child in node[:TURN_SNIFF_WIDTH]):
        logger.info("Found turn list at depth %d with %d items", depth, len(node))
        return node

    for child in node:
        if isinstance(child, list):
            found = _find_turn_list(child, depth + 1)
            if found is not None:
                return found
    return None


def find_turn_list(payload: JsonValue) -> list[JsonValue]:
    """Depth-first search for the first array whose leading children are turns.

    Raises:
        TurnListNotFoundError: No such array within the depth bound.
    """
    found = _find_turn_list(payload, 0)
    if found is None:
        raise TurnListNotFoundError("Could not locate chat history in payload")
    return found


def turn_role(turn: Sequence[JsonValue]) -> Optional[TurnRole]:
    """Classify a turn by its role marker; "user" wins if both are present."""
    if ROLE_USER in turn:
        return TurnRole.USER
    if ROLE_MODEL in turn:
        return TurnRole.MODEL
    return None


def _flag_set(turn: Sequence[JsonValue], index: int) -> bool:
    if len(turn) <= index:
        return False
    value = turn[index]
    # Only the numeric marker counts; JSON true is a different signal.
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value == 1


def is_thinking_turn(turn: Sequence[JsonValue]) -> bool:
    return _flag_set(turn, THINKING_FLAG_INDEX)


def is_response_turn(turn: Sequence[JsonValue]) -> bool:
    return _flag_set(turn, RESPONSE_FLAG_INDEX)


def extract_turn_text(turn: Sequence[JsonValue]) -> str:
    """Return the longest non-marker string near the head of a turn.

    Shorter strings at these positions are ids and metadata. When two
    candidates tie, the first one encountered wins.
    """
    candidates: list[str] = []

    def scan(item: JsonValue, depth: int) -> None:
        if depth > TEXT_SCAN_MAX_DEPTH:
            return
        if isinstance(item, str):
            if len(item) > 1 and item not in RESERVED_MARKERS:
                candidates.append(item)
        elif isinstance(item, list):
            for sub in item:
                scan(sub, depth + 1)

    scan(list(turn[:TEXT_SCAN_WIDTH]), 0)
    if not candidates:
        return ""
    return max(candidates, key=len)


def decode_turn(turn: JsonValue) -> Optional[Turn]:
    """Decode one raw turn into a tagged Turn.

    Returns None for arrays that carry no role marker.

    Raises:
        MalformedPayloadError: turn is not an array.
    """
    if not isinstance(turn, list):
        raise MalformedPayloadError(f"Expected turn array, got {type(turn).__name__}")

    role = turn_role(turn)
    if role is None:
        return None

    text = extract_turn_text(turn)
    if role is TurnRole.USER:
        return Turn.user(text)

    if is_thinking_turn(turn) and not is_response_turn(turn):
        return Turn.thought(text)
    return Turn.reply(text)


def decode_transcript(payload: JsonValue) -> TranscriptSequence:
    """Locate the turn list and decode it into conversation order.

    Thought-only turns are buffered and folded into the next reply, exactly as
    the renderer buffers them; a user turn discards the buffer.
    """
    turn_list = find_turn_list(payload)

    turns: TranscriptSequence = []
    pending_thoughts: list[str] = []

    for index, raw in enumerate(turn_list):
        decoded = decode_turn(raw)
        if decoded is None:
            logger.debug("Skipping non-turn element at index %d", index)
            continue

        if decoded.role is TurnRole.USER:
            pending_thoughts = []
            turns.append(decoded)
        elif decoded.subtype is TurnSubtype.THOUGHT_ONLY:
            if decoded.thought_text:
                pending_thoughts.append(decoded.thought_text)
        else:
            thought = "\n\n".join(pending_thoughts).strip() if pending_thoughts else None
            turns.append(Turn.reply(decoded.response_text or "", thought=thought))
            pending_thoughts = []

    if pending_thoughts:
        logger.debug("Dropping %d trailing thought turns without a reply", len(pending_thoughts))

    logger.info("Decoded %d turns from %d raw entries", len(turns), len(turn_list))
    return turns


def decode_envelope(raw_text: str) -> JsonValue:
    """Parse a captured response body into the payload shape decode_transcript expects.

    Strips the anti-XSSI prefix and wraps a bare prompt record so that
    payload[0] is always the prompt.

    Raises:
        MalformedPayloadError: body is not JSON.
    """
    text = raw_text.strip()
    if text.startswith(XSSI_PREFIX):
        text = text[len(XSSI_PREFIX) :].strip()
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedPayloadError(f"Response body is not JSON: {e}") from e

    if isinstance(payload, list) and payload and isinstance(payload[0], str) and payload[0].startswith("prompts/"):
        payload = [payload]
    return payload


def payload_title(payload: JsonValue) -> Optional[str]:
    """Read the conversation title from payload[0][4][0], if present."""
    if not isinstance(payload, list) or not payload:
        return None
    root = payload[0]
    if not isinstance(root, list) or len(root) <= TITLE_INDEX:
        return None
    title_field = root[TITLE_INDEX]
    if isinstance(title_field, list) and title_field and isinstance(title_field[0], str):
        return title_field[0]
    return None


def prompt_root(payload: JsonValue) -> JsonValue:
    """Return the prompt record of an envelope-decoded payload (payload[0])."""
    if isinstance(payload, list) and payload and isinstance(payload[0], list):
        return payload[0]
    return payload
