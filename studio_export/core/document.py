"""Interfaces for the live document tree the collector and scroll driver read.

The tree is an external, mutable resource. Every call is a snapshot read at
the moment it is made; nothing here subscribes to changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable, Optional, Protocol, Sequence

from studio_export.core.models import TurnRole


@dataclass(frozen=True)
class ScrollMetrics:
    """Scroll position and extents of the scroll container, in pixels."""

    top: float
    client_height: float
    scroll_height: float

    @property
    def max_top(self) -> float:
        return max(0.0, self.scroll_height - self.client_height)


class Disclosure(Protocol):
    """A collapsed affordance inside a model turn (panel header or "more" button)."""

    label: str
    is_thought_chunk: bool

    async def expand(self) -> None: ...


class TurnNode(Protocol):
    """One turn container currently materialized in the tree."""

    @property
    def key(self) -> Hashable:
        """Identity of the underlying node; stable while the node is alive."""
        ...

    async def role(self) -> Optional[TurnRole]: ...

    async def user_text(self) -> Optional[str]: ...

    async def disclosures(self) -> Sequence[Disclosure]: ...

    async def thought_text(self) -> Optional[str]: ...

    async def response_chunks(self) -> Sequence[str]:
        """Text of every non-thought content region, in order."""
        ...

    async def fallback_text(self) -> Optional[str]:
        """Full rendered text of the turn's content area."""
        ...


class DocumentTree(Protocol):
    """Queryable, scrollable view over the conversation."""

    async def turn_nodes(self) -> Sequence[TurnNode]:
        """Turn containers in document order."""
        ...

    async def scroll_metrics(self) -> ScrollMetrics: ...

    async def scroll_to(self, top: float) -> None: ...

    async def scroll_by(self, delta: float) -> None: ...

    async def release(self, nodes: Sequence[TurnNode]) -> None:
        """Drop whatever the nodes from one turn_nodes() call hold on the live page."""
        ...
