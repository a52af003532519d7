"""Unit tests for the scroll driver state machine."""

import pytest
from fake_document import FakeDocument, conversation

from studio_export.config.schema import ScrollTuning
from studio_export.core.collector import DocumentCollector
from studio_export.core.errors import ExtractionCancelledError
from studio_export.core.models import Turn
from studio_export.core.scroll import ExtractionSession, ScrollDriver, ScrollOutcome, ScrollPhase


def zero_delay_tuning(**overrides):
    values = dict(
        scroll_delay_ms=0,
        initial_nudge_delay_ms=0,
        upward_scroll_delay_ms=0,
        final_collection_delay_ms=0,
        thought_expand_delay_ms=0,
    )
    values.update(overrides)
    return ScrollTuning(**values)


class CancellingCollector(DocumentCollector):
    """Cancels the session from inside the given collection pass."""

    def __init__(self, document, tuning, session, cancel_on_pass):
        super().__init__(document, tuning)
        self._session = session
        self._cancel_on_pass = cancel_on_pass

    async def collect(self):
        changed = await super().collect()
        if self.passes == self._cancel_on_pass:
            self._session.cancel()
        return changed


def make_driver(document, **overrides):
    tuning = zero_delay_tuning(**overrides)
    collector = DocumentCollector(document, tuning)
    return ScrollDriver(document, collector, tuning), collector


@pytest.mark.unit
@pytest.mark.asyncio
async def test_virtualized_conversation_is_fully_collected():
    turns = conversation(12)
    document = FakeDocument(turns)
    driver, collector = make_driver(document)
    session = ExtractionSession()

    report = await driver.run(session)

    assert report.outcome is ScrollOutcome.REACHED_END
    assert report.reached_end
    assert not report.exhausted
    assert report.records == 12
    assert session.phase is ScrollPhase.DONE
    assert not session.running
    expected = [Turn.user(f"question {i}") if i % 2 == 0 else Turn.reply(f"answer {i}") for i in range(12)]
    assert await collector.ordered_turns() == expected


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stalled_view_stops_with_reached_end():
    document = FakeDocument(conversation(50), max_step=2)
    driver, _ = make_driver(document)

    report = await driver.run(ExtractionSession())

    assert report.outcome is ScrollOutcome.STALLED
    assert report.reached_end is True
    assert report.attempts == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_attempt_ceiling_is_not_an_error():
    document = FakeDocument(conversation(100))
    driver, _ = make_driver(document, max_scroll_attempts=3)

    report = await driver.run(ExtractionSession())

    assert report.outcome is ScrollOutcome.EXHAUSTED
    assert report.exhausted
    assert not report.reached_end
    assert report.attempts == 3


@pytest.mark.unit
@pytest.mark.asyncio
async def test_scroll_target_is_clamped_to_max_position():
    document = FakeDocument(conversation(4))  # 400px tall, 300px viewport
    driver, _ = make_driver(document)

    await driver.run(ExtractionSession())

    assert 100 in document.scroll_targets
    assert 150 not in document.scroll_targets


@pytest.mark.unit
@pytest.mark.asyncio
async def test_finalize_visits_top_middle_and_bottom():
    document = FakeDocument(conversation(10))
    driver, _ = make_driver(document)

    await driver.run(ExtractionSession())

    assert document.scroll_targets[-3:] == [0.0, 500.0, 1000.0]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_finalize_catches_turns_missed_between_stops():
    turns = conversation(10)
    document = FakeDocument(turns)
    driver, collector = make_driver(document, max_scroll_attempts=1)

    report = await driver.run(ExtractionSession())

    assert report.exhausted
    assert collector.state[turns[6]].user_text == "question 6"
    assert collector.state[turns[9]].response_text == "answer 9"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_preload_stops_once_height_is_stable():
    document = FakeDocument(conversation(6))
    driver, _ = make_driver(document)

    await driver.preload()

    # One jump to measure the height, a second to confirm it no longer grows.
    assert document.scroll_targets == [0, 0]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_before_start_collects_nothing():
    document = FakeDocument(conversation(6))
    driver, collector = make_driver(document)
    session = ExtractionSession()
    session.cancel()

    with pytest.raises(ExtractionCancelledError):
        await driver.run(session)

    assert collector.passes == 0
    assert session.phase is ScrollPhase.CANCELLED
    assert not session.running


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_mid_run_stops_at_next_iteration():
    document = FakeDocument(conversation(40))
    tuning = zero_delay_tuning()
    session = ExtractionSession()
    collector = CancellingCollector(document, tuning, session, cancel_on_pass=3)
    driver = ScrollDriver(document, collector, tuning)

    with pytest.raises(ExtractionCancelledError):
        await driver.run(session)

    # Initial pass plus two loop passes; no further scroll or finalize pass.
    assert collector.passes == 3
    assert session.attempts == 2
    assert session.phase is ScrollPhase.CANCELLED
