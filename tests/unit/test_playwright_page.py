"""Unit tests for element handle lifetimes in the Playwright document."""

import pytest

from studio_export.browser.page import PlaywrightDocument, PlaywrightTurnNode


class FakeHandle:
    """Stand-in for an ElementHandle that records disposal."""

    def __init__(self, name, children=None, label="", evaluate_result=None):
        self.name = name
        self.children = children or {}
        self.label = label
        self.evaluate_result = evaluate_result
        self.disposed = False

    async def query_selector_all(self, selector):
        return list(self.children.get(selector, []))

    async def query_selector(self, selector):
        found = self.children.get(selector, [])
        return found[0] if found else None

    async def evaluate(self, script, arg=None):
        return self.evaluate_result

    async def text_content(self):
        return self.label

    async def dispose(self):
        self.disposed = True


class FakePage:
    def __init__(self, turns):
        self.turns = turns

    async def query_selector_all(self, selector):
        return list(self.turns)


PANEL_SELECTOR = 'mat-expansion-panel[aria-expanded="false"]'
PANEL_BUTTON_SELECTOR = 'button[aria-expanded="false"]'
CHUNK_BUTTON_SELECTOR = 'button[aria-expanded="false"], button:not([aria-expanded])'


def model_turn_handle():
    panel_button = FakeHandle("panel-button")
    panel = FakeHandle("panel", {PANEL_BUTTON_SELECTOR: [panel_button]}, evaluate_result="Thoughts ")
    more_button = FakeHandle("more-button", label="Show more")
    chunk = FakeHandle("chunk", {CHUNK_BUTTON_SELECTOR: [more_button]})
    bare_chunk = FakeHandle("bare-chunk")
    turn = FakeHandle("turn", {PANEL_SELECTOR: [panel], "ms-thought-chunk": [chunk, bare_chunk]})
    return turn, [panel_button, panel, more_button, chunk, bare_chunk]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_disclosure_buttons_live_until_the_node_is_disposed():
    handle, inner = model_turn_handle()
    panel_button, panel, more_button, chunk, bare_chunk = inner
    node = PlaywrightTurnNode(handle, key=1)

    disclosures = await node.disclosures()

    assert [(d.label, d.is_thought_chunk) for d in disclosures] == [("Thoughts ", False), ("Show more", True)]
    assert panel.disposed and chunk.disposed and bare_chunk.disposed
    assert not panel_button.disposed and not more_button.disposed

    await node.dispose()

    assert handle.disposed and panel_button.disposed and more_button.disposed


@pytest.mark.unit
@pytest.mark.asyncio
async def test_release_disposes_every_turn_handle():
    handles = [FakeHandle(f"turn-{i}", evaluate_result=i) for i in range(3)]
    document = PlaywrightDocument(FakePage(handles))

    nodes = await document.turn_nodes()
    assert [node.key for node in nodes] == [0, 1, 2]

    await document.release(nodes)

    assert all(handle.disposed for handle in handles)
