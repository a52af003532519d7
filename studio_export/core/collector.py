"""Incremental, idempotent harvesting of turns from a live document tree."""

from __future__ import annotations

import asyncio
from typing import Optional

from studio_export.config.schema import ScrollTuning
from studio_export.core.document import DocumentTree, TurnNode
from studio_export.core.models import CollectedTurn, CollectionState, RecordType, TranscriptSequence, TurnRole
from studio_export.logging_config import get_logger
from studio_export.utils import preview

logger = get_logger(__name__)

THINKING_LABEL_WORDS = ("thought", "thinking")


def is_thinking_label(label: str) -> bool:
    lowered = label.lower()
    return any(word in lowered for word in THINKING_LABEL_WORDS)


class DocumentCollector:
    """Harvest turn content from whatever part of the tree is materialized.

    State is keyed by node identity, never by position: under virtualization
    the same index points at different turns as the view scrolls. Fields are
    filled at most once, so running a pass twice over the same nodes is a no-op.
    """

    def __init__(self, document: DocumentTree, tuning: Optional[ScrollTuning] = None) -> None:
        self._document = document
        self._tuning = tuning or ScrollTuning()
        self._state: CollectionState = {}
        self.passes = 0

    @property
    def state(self) -> CollectionState:
        return self._state

    def reset(self) -> None:
        """Drop everything collected; called at the start of every session."""
        self._state = {}
        self.passes = 0

    async def collect(self) -> bool:
        """Run one non-destructive scan over the current tree.

        Returns:
            True if any record was inserted or updated during this pass.
        """
        self.passes += 1
        newly_found = 0
        updated = False

        nodes = await self._document.turn_nodes()
        try:
            for index, node in enumerate(nodes):
                role = await node.role()
                if role is None:
                    continue

                record = self._state.get(node.key)
                if record is None:
                    record = CollectedTurn()
                    self._state[node.key] = record
                    newly_found += 1

                if role is TurnRole.USER:
                    changed = await self._collect_user(node, record, index)
                else:
                    changed = await self._collect_model(node, record, index)
                updated = updated or changed
        finally:
            await self._document.release(nodes)

        return newly_found > 0 or updated

    async def _collect_user(self, node: TurnNode, record: CollectedTurn, index: int) -> bool:
        if record.type is RecordType.UNKNOWN:
            record.type = RecordType.USER
        if record.user_text:
            return False

        text = await node.user_text()
        if not text or not text.strip():
            return False
        record.user_text = text.strip()
        logger.debug("Extracted user text from turn %d: %r", index, preview(record.user_text))
        return True

    async def _collect_model(self, node: TurnNode, record: CollectedTurn, index: int) -> bool:
        if record.type is RecordType.UNKNOWN:
            record.type = RecordType.MODEL

        await self._expand_thinking(node, index)
        changed = False

        if not record.thought_text:
            thought = (await node.thought_text() or "").strip()
            # Shorter text is placeholder scaffolding that has not rendered yet.
            if len(thought) >= self._tuning.thought_min_length:
                record.thought_text = thought
                changed = True
                logger.debug("Extracted thinking from turn %d: %r", index, preview(thought))

        if not record.response_text:
            chunks = [chunk.strip() for chunk in await node.response_chunks()]
            chunks = [chunk for chunk in chunks if chunk]
            if chunks:
                record.response_text = "\n\n".join(chunks)
                changed = True
                logger.debug("Extracted response from turn %d with %d chunks", index, len(chunks))
            elif not record.thought_text:
                fallback = (await node.fallback_text() or "").strip()
                if fallback:
                    record.response_text = fallback
                    changed = True
                    logger.debug("Extracted response from turn %d using fallback", index)

        if changed:
            record.refine_type()
        return changed

    async def _expand_thinking(self, node: TurnNode, index: int) -> bool:
        expanded = False
        for disclosure in await node.disclosures():
            if disclosure.is_thought_chunk:
                wanted = "more" in disclosure.label.lower()
            else:
                wanted = is_thinking_label(disclosure.label)
            if not wanted:
                continue
            await disclosure.expand()
            expanded = True
            logger.debug("Expanded thinking section for turn %d", index)

        if expanded:
            await asyncio.sleep(self._tuning.thought_expand_delay_ms / 1000)
        return expanded

    async def ordered_turns(self) -> TranscriptSequence:
        """Map the tree's current turn order through the collected state.

        Nodes that were never seen, or never yielded classifiable content, are
        skipped silently.
        """
        turns: TranscriptSequence = []
        nodes = await self._document.turn_nodes()
        try:
            for node in nodes:
                record = self._state.get(node.key)
                if record is None:
                    continue
                turn = record.to_turn()
                if turn is not None:
                    turns.append(turn)
        finally:
            await self._document.release(nodes)
        logger.info("Ordered %d turns from %d collected records", len(turns), len(self._state))
        return turns
