"""The two extraction pipelines and the single-active-session guard.

Pipeline A: wire payload -> decoder -> renderer.
Pipeline B: scroll driver + document collector -> renderer.

Either a complete document comes back or an ExtractionError is raised;
partial transcripts are never returned.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from studio_export.config.schema import ScrollTuning
from studio_export.core.collector import DocumentCollector
from studio_export.core.document import DocumentTree
from studio_export.core.errors import EmptyTranscriptError, ExtractionBusyError, ExtractionCancelledError
from studio_export.core.models import RenderOptions, TranscriptSequence
from studio_export.core.renderer import render_transcript
from studio_export.core.scroll import ExtractionSession, ScrollDriver, ScrollReport
from studio_export.core.wire import JsonValue, decode_transcript
from studio_export.logging_config import get_logger
from studio_export.utils import fallback_title, sanitize_filename

logger = get_logger(__name__)


@dataclass
class ExportResult:
    """A rendered transcript and where to save it."""

    markdown: str
    filename: str
    title: str
    turn_count: int
    scroll_report: Optional[ScrollReport] = None


def build_result(
    turns: TranscriptSequence,
    options: RenderOptions,
    title: Optional[str] = None,
    scroll_report: Optional[ScrollReport] = None,
) -> ExportResult:
    """Render turns into an ExportResult.

    Raises:
        EmptyTranscriptError: there were no turns to render.
    """
    title = (title or "").strip() or fallback_title()
    markdown = render_transcript(turns, options, title=title)
    if markdown is None:
        raise EmptyTranscriptError("No content extracted")
    return ExportResult(
        markdown=markdown,
        filename=sanitize_filename(title),
        title=title,
        turn_count=len(turns),
        scroll_report=scroll_report,
    )


def export_payload(
    payload: JsonValue,
    options: Optional[RenderOptions] = None,
    title: Optional[str] = None,
) -> ExportResult:
    """Pipeline A: decode an already-parsed wire payload and render it.

    Raises:
        TurnListNotFoundError, MalformedPayloadError, EmptyTranscriptError
    """
    turns = decode_transcript(payload)
    return build_result(turns, options or RenderOptions(), title=title)


class Exporter:
    """Runs Pipeline B against one document, one session at a time."""

    def __init__(
        self,
        document: DocumentTree,
        options: Optional[RenderOptions] = None,
        tuning: Optional[ScrollTuning] = None,
    ) -> None:
        self.options = options or RenderOptions()
        self.collector = DocumentCollector(document, tuning)
        self.driver = ScrollDriver(document, self.collector, tuning)
        self._session: Optional[ExtractionSession] = None

    @property
    def active_session(self) -> Optional[ExtractionSession]:
        return self._session

    def cancel(self) -> bool:
        """Cancel the active session, if any. Returns whether one was running."""
        if self._session is None:
            return False
        self._session.cancel()
        logger.warning("Extraction cancel requested")
        return True

    async def export_document(self, title: Optional[str] = None) -> ExportResult:
        """Pipeline B: scroll the document to completeness and render what was collected.

        Raises:
            ExtractionBusyError: another session is still active.
            ExtractionCancelledError: cancel() was called; collected data is discarded.
            EmptyTranscriptError: no turn could be classified.
        """
        if self._session is not None:
            raise ExtractionBusyError("An extraction is already running")

        session = ExtractionSession()
        self._session = session
        self.collector.reset()
        try:
            report = await self.driver.run(session)
            if session.cancelled:
                raise ExtractionCancelledError("Extraction cancelled")
            turns = await self.collector.ordered_turns()
            result = build_result(turns, self.options, title=title, scroll_report=report)
        except ExtractionCancelledError:
            logger.warning("Extraction aborted by user; discarding collected data")
            raise
        except Exception as e:
            logger.error("Document extraction failed: %s", e)
            raise
        finally:
            self.collector.reset()
            self._session = None

        logger.info(
            "Extracted %d turns in %d scroll attempts (%s)",
            result.turn_count,
            report.attempts,
            report.outcome.value,
        )
        return result
