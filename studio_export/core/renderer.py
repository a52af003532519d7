"""Render a transcript sequence into one markdown document.

Both pipelines end here. Thought-only turns are buffered and flushed into the
next reply, so differences in how each source splits thinking from replies
are normalized in one place.
"""

from __future__ import annotations

import re
from typing import Optional, Sequence

from studio_export.core.models import RenderOptions, Turn, TurnRole, TurnSubtype

USER_HEADING = "### **USER**\n\n"
MODEL_HEADING = "### **MODEL**\n\n"
SEPARATOR = "---\n\n"

_EXCESS_NEWLINES = re.compile(r"\n{3,}")


def _strip_trailing_blank_lines(text: str) -> str:
    """Drop trailing whitespace from its first newline on; spaces ending the last line stay."""
    stripped = text.rstrip()
    tail = text[len(stripped) :]
    newline = tail.find("\n")
    return text if newline < 0 else stripped + tail[:newline]


def format_thinking(text: str, collapsible: bool) -> str:
    """Quote thinking text and wrap it in a collapsible or plain block.

    Trailing blank lines are stripped, runs of 3+ newlines collapse to one
    blank line, and every line gets a block-quote marker.
    """
    cleaned = _EXCESS_NEWLINES.sub("\n\n", _strip_trailing_blank_lines(text))
    quoted = cleaned.replace("\n", "\n> ")
    if collapsible:
        return f"<details>\n<summary><strong>Thinking</strong></summary>\n\n> {quoted}\n\n</details>\n\n"
    return f"> **Thinking:**\n>\n> {quoted}\n\n"


class TranscriptRenderer:
    """Stateful renderer; the pending-thought buffer lives for one render call."""

    def __init__(self, options: RenderOptions) -> None:
        self.options = options.normalized()
        self._pending: list[str] = []

    def render(self, turns: Sequence[Turn], title: Optional[str] = None) -> Optional[str]:
        """Render turns to markdown, or None when there are no turns at all."""
        if not turns:
            return None

        self._pending = []
        parts: list[str] = []
        if title is not None:
            parts.append(f"# {title}\n\n")

        for turn in turns:
            if turn.role is TurnRole.USER:
                parts.append(self._render_user(turn))
            elif turn.subtype is TurnSubtype.THOUGHT_ONLY:
                if self.options.include_thinking and turn.thought_text:
                    self._pending.append(turn.thought_text)
            else:
                parts.append(self._render_reply(turn))

        self._pending = []
        return "".join(parts)

    def _render_user(self, turn: Turn) -> str:
        # Thinking never carries across a user turn, shown or not.
        self._pending = []
        if self.options.include_user and turn.user_text:
            return f"{USER_HEADING}{turn.user_text}\n\n{SEPARATOR}"
        return ""

    def _render_reply(self, turn: Turn) -> str:
        if not self.options.include_model:
            self._pending = []
            return ""

        out = [MODEL_HEADING]
        flushed = False
        if self.options.include_thinking and self._pending:
            buffered = "\n\n".join(self._pending).strip()
            out.append(format_thinking(buffered, self.options.collapsible_thinking))
            flushed = True
        self._pending = []

        if (
            self.options.include_thinking
            and not flushed
            and turn.subtype is TurnSubtype.THOUGHT_AND_REPLY
            and turn.thought_text
        ):
            out.append(format_thinking(turn.thought_text, self.options.collapsible_thinking))

        if turn.response_text:
            out.append(f"{turn.response_text}\n\n")
        out.append(SEPARATOR)
        return "".join(out)


def render_transcript(
    turns: Sequence[Turn],
    options: Optional[RenderOptions] = None,
    title: Optional[str] = None,
) -> Optional[str]:
    """Render turns with the given options; None for an empty sequence."""
    return TranscriptRenderer(options or RenderOptions()).render(turns, title=title)
