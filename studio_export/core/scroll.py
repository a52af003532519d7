"""Drive a virtualized scroll view until the collector has seen every turn.

The loop is a bounded convergence detector with three independent stop
conditions: the view reports it reached the bottom, the view stops moving
(stall), or the attempt ceiling is hit. No single one is reliable across
virtualization implementations.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from studio_export.config.schema import ScrollTuning
from studio_export.core.collector import DocumentCollector
from studio_export.core.document import DocumentTree
from studio_export.core.errors import ExtractionCancelledError
from studio_export.logging_config import get_logger

logger = get_logger(__name__)


class ScrollPhase(str, Enum):
    PRELOADING = "preloading"
    SCROLLING = "scrolling"
    FINALIZING = "finalizing"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ScrollOutcome(str, Enum):
    """Why the scroll loop stopped."""

    REACHED_END = "reached_end"
    STALLED = "stalled"
    EXHAUSTED = "exhausted"


@dataclass
class ExtractionSession:
    """Run-scoped state for one extraction."""

    attempts: int = 0
    running: bool = False
    phase: ScrollPhase = ScrollPhase.PRELOADING
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        """Request cooperative cancellation; honoured at the next loop boundary."""
        self.cancel_event.set()


@dataclass
class ScrollReport:
    """Result of one completed scroll run."""

    outcome: ScrollOutcome
    attempts: int
    records: int

    @property
    def reached_end(self) -> bool:
        return self.outcome in (ScrollOutcome.REACHED_END, ScrollOutcome.STALLED)

    @property
    def exhausted(self) -> bool:
        return self.outcome is ScrollOutcome.EXHAUSTED


async def _delay(ms: float) -> None:
    await asyncio.sleep(ms / 1000)


class ScrollDriver:
    """Preload, scroll and finalize over one ExtractionSession.

    States: PRELOADING -> SCROLLING -> FINALIZING -> DONE, with CANCELLED and
    FAILED as abort paths.
    """

    def __init__(
        self,
        document: DocumentTree,
        collector: DocumentCollector,
        tuning: Optional[ScrollTuning] = None,
    ) -> None:
        self._document = document
        self._collector = collector
        self._tuning = tuning or ScrollTuning()

    async def run(self, session: ExtractionSession) -> ScrollReport:
        """Scroll the whole conversation through the view, collecting as it goes.

        Raises:
            ExtractionCancelledError: session was cancelled; nothing further is collected.
        """
        session.running = True
        session.attempts = 0
        try:
            session.phase = ScrollPhase.PRELOADING
            await self._document.scroll_by(-self._tuning.initial_nudge_px)
            await _delay(self._tuning.initial_nudge_delay_ms)
            await self.preload()

            self._check_cancelled(session)
            session.phase = ScrollPhase.SCROLLING
            await self._collector.collect()
            logger.info("Initial collection: %d records", len(self._collector.state))
            outcome = await self._scroll(session)

            session.phase = ScrollPhase.FINALIZING
            await self._finalize()
            session.phase = ScrollPhase.DONE
        except ExtractionCancelledError:
            session.phase = ScrollPhase.CANCELLED
            raise
        except Exception:
            session.phase = ScrollPhase.FAILED
            raise
        finally:
            session.running = False

        report = ScrollReport(outcome=outcome, attempts=session.attempts, records=len(self._collector.state))
        logger.info("Final data collection complete: %d records (%s)", report.records, report.outcome.value)
        return report

    async def preload(self) -> None:
        """Force lazily loaded history above the view to materialize.

        Jumps to the top until the scroll height stops growing.
        """
        logger.info("Preloading history by scrolling to top")
        last_height = 0.0
        for _ in range(self._tuning.preload_attempts):
            await self._document.scroll_to(0)
            await _delay(self._tuning.upward_scroll_delay_ms)
            height = (await self._document.scroll_metrics()).scroll_height
            if height <= last_height + self._tuning.min_scroll_distance_px:
                logger.info("History preloading stable at height %.0fpx", height)
                break
            last_height = height
            logger.debug("Preloading: scroll height grew to %.0fpx", height)

    def _check_cancelled(self, session: ExtractionSession) -> None:
        if session.cancelled:
            logger.warning("Scroll aborted by user after %d attempts", session.attempts)
            raise ExtractionCancelledError("Extraction cancelled")

    async def _scroll(self, session: ExtractionSession) -> ScrollOutcome:
        tuning = self._tuning
        logger.info("Starting incremental scroll (up to %d attempts)", tuning.max_scroll_attempts)

        while session.attempts < tuning.max_scroll_attempts:
            self._check_cancelled(session)

            metrics = await self._document.scroll_metrics()
            if session.attempts > 0 and metrics.top + metrics.client_height >= (
                metrics.scroll_height - tuning.bottom_tolerance_px
            ):
                logger.info("Reached bottom of conversation after %d attempts", session.attempts)
                return ScrollOutcome.REACHED_END

            target = min(metrics.top + tuning.scroll_increment_px, metrics.max_top)
            await self._document.scroll_to(target)
            session.attempts += 1
            await _delay(tuning.scroll_delay_ms)

            moved = (await self._document.scroll_metrics()).top - metrics.top
            if moved < tuning.min_scroll_distance_px and session.attempts > 1:
                logger.info("Scroll effectively stopped after %d attempts, assuming end", session.attempts)
                return ScrollOutcome.STALLED

            await self._collector.collect()
            if session.attempts % tuning.progress_log_every == 0:
                logger.info(
                    "Scroll %d/%d: %d records", session.attempts, tuning.max_scroll_attempts, len(self._collector.state)
                )

        logger.warning("Reached maximum scroll attempts limit (%d)", tuning.max_scroll_attempts)
        return ScrollOutcome.EXHAUSTED

    async def _finalize(self) -> None:
        """Collect once more at top, middle and bottom.

        Virtualization windows rarely line up with the incremental stops, so a
        few turns can slip between them.
        """
        logger.info("Performing final collection passes")
        for fraction in (0.0, 0.5, 1.0):
            height = (await self._document.scroll_metrics()).scroll_height
            await self._document.scroll_to(height * fraction)
            await _delay(self._tuning.final_collection_delay_ms)
            await self._collector.collect()
