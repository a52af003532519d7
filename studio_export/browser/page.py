"""Playwright implementation of the live document tree.

All DOM knowledge about the chat page (selectors, the Raw Mode toggle, how
the scroll container is found) lives here; the collector and scroll driver
only see the DocumentTree protocol.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Hashable, Literal, Optional, Sequence

from playwright.async_api import ElementHandle, JSHandle, Page

from studio_export.constants import (
    BOTTOM_DETECTION_TOLERANCE_PX,
    RAW_MODE_RENDER_DELAY_MS,
    SCROLL_PARENT_SEARCH_DEPTH,
)
from studio_export.core.document import ScrollMetrics
from studio_export.core.models import TurnRole
from studio_export.logging_config import get_logger

logger = get_logger(__name__)

TURN_SELECTOR = "ms-chat-turn"
RAW_TEXT_SELECTOR = "ms-text-chunk .very-large-text-container"
THOUGHT_TEXT_SELECTOR = "ms-thought-chunk .very-large-text-container"
RENDERED_TEXT_SELECTOR = "ms-text-chunk ms-cmark-node"
FIRST_USER_TURN_SELECTOR = "ms-chat-turn .chat-turn-container.user"
MORE_ACTIONS_SELECTOR = 'button[aria-label="View more actions"]'
MENU_ITEM_SELECTOR = '.cdk-overlay-container .mat-mdc-menu-content button[role="menuitem"]'
TITLE_SELECTOR = "ms-toolbar .page-title h1.mode-title"

ViewMode = Literal["raw", "rendered"]

_STAMP_KEY_JS = """(el) => {
    if (el.__studioExportKey === undefined) {
        window.__studioExportSeq = (window.__studioExportSeq || 0) + 1;
        el.__studioExportKey = window.__studioExportSeq;
    }
    return el.__studioExportKey;
}"""

_ROLE_JS = """(el) => {
    const c = el.querySelector('.chat-turn-container.user, .chat-turn-container.model');
    if (!c) return null;
    if (c.classList.contains('user')) return 'user';
    return c.classList.contains('model') ? 'model' : null;
}"""

_TEXT_JS = "(el, sel) => { const n = el.querySelector(sel); return n ? n.textContent : null; }"

_RESPONSE_CHUNKS_JS = """(el, rawSel) => Array.from(el.querySelectorAll('.turn-content > ms-prompt-chunk'))
    .filter((chunk) => !chunk.querySelector('ms-thought-chunk'))
    .map((chunk) => {
        const raw = chunk.querySelector(rawSel);
        return raw ? raw.textContent : chunk.innerText;
    })"""

_FALLBACK_JS = "(el) => { const c = el.querySelector('.turn-content'); return c ? c.innerText : null; }"

_PANEL_LABEL_JS = """(panel) => {
    const header = panel.querySelector('.mat-expansion-panel-header-title');
    const button = panel.querySelector('button[aria-expanded="false"]');
    return [header ? header.textContent : '', button ? button.textContent : ''].join(' ');
}"""

_FIND_SCROLLER_JS = """([depth, tolerance]) => {
    const auto = document.querySelector('ms-autoscroll-container');
    if (auto) return auto;
    let parent = document.querySelector('ms-chat-turn')?.parentElement;
    for (let i = 0; i < depth && parent; i++) {
        const overflowY = window.getComputedStyle(parent).overflowY;
        if (parent.scrollHeight > parent.clientHeight + tolerance &&
            (overflowY === 'auto' || overflowY === 'scroll')) {
            return parent;
        }
        parent = parent.parentElement;
    }
    return document.scrollingElement || document.documentElement;
}"""

_METRICS_JS = "(el) => [el.scrollTop, el.clientHeight, el.scrollHeight]"
_SCROLL_TO_JS = "(el, top) => { el.scrollTop = top; }"
_SCROLL_BY_JS = "(el, delta) => { el.scrollTop += delta; }"


@dataclass
class PlaywrightDisclosure:
    """A collapsed panel header or thought-chunk "more" button."""

    label: str
    is_thought_chunk: bool
    button: ElementHandle

    async def expand(self) -> None:
        # Plain DOM click: no actionability waits or scrolling the button into view.
        await self.button.evaluate("(el) => el.click()")


class PlaywrightTurnNode:
    """One `ms-chat-turn` element, identified by a key stamped onto the node itself."""

    def __init__(self, handle: ElementHandle, key: int) -> None:
        self._handle = handle
        self._key = key
        self._buttons: list[ElementHandle] = []

    @property
    def key(self) -> Hashable:
        return self._key

    async def role(self) -> Optional[TurnRole]:
        value = await self._handle.evaluate(_ROLE_JS)
        return TurnRole(value) if value else None

    async def user_text(self) -> Optional[str]:
        return await self._handle.evaluate(_TEXT_JS, RAW_TEXT_SELECTOR)

    async def thought_text(self) -> Optional[str]:
        return await self._handle.evaluate(_TEXT_JS, THOUGHT_TEXT_SELECTOR)

    async def response_chunks(self) -> Sequence[str]:
        return await self._handle.evaluate(_RESPONSE_CHUNKS_JS, RAW_TEXT_SELECTOR)

    async def fallback_text(self) -> Optional[str]:
        return await self._handle.evaluate(_FALLBACK_JS)

    async def disclosures(self) -> Sequence[PlaywrightDisclosure]:
        """Collapsed affordances in this turn.

        Their button handles stay alive until dispose() so the collector can
        click them later in the same pass.
        """
        found: list[PlaywrightDisclosure] = []
        for panel in await self._handle.query_selector_all('mat-expansion-panel[aria-expanded="false"]'):
            try:
                button = await panel.query_selector('button[aria-expanded="false"]')
                if button is None:
                    continue
                self._buttons.append(button)
                label = await panel.evaluate(_PANEL_LABEL_JS)
            finally:
                await panel.dispose()
            found.append(PlaywrightDisclosure(label=label, is_thought_chunk=False, button=button))

        for chunk in await self._handle.query_selector_all("ms-thought-chunk"):
            try:
                button = await chunk.query_selector('button[aria-expanded="false"], button:not([aria-expanded])')
            finally:
                await chunk.dispose()
            if button is None:
                continue
            self._buttons.append(button)
            label = await button.text_content() or ""
            found.append(PlaywrightDisclosure(label=label, is_thought_chunk=True, button=button))
        return found

    async def dispose(self) -> None:
        """Let the page collect this element and any buttons found in it."""
        buttons, self._buttons = self._buttons, []
        for button in buttons:
            await button.dispose()
        await self._handle.dispose()


class PlaywrightDocument:
    """DocumentTree over a chat page opened in Playwright."""

    def __init__(self, page: Page) -> None:
        self.page = page
        self._scroller: Optional[JSHandle] = None

    async def _scroll_container(self) -> JSHandle:
        if self._scroller is None:
            self._scroller = await self.page.evaluate_handle(
                _FIND_SCROLLER_JS, [SCROLL_PARENT_SEARCH_DEPTH, BOTTOM_DETECTION_TOLERANCE_PX]
            )
            tag = await self._scroller.evaluate("(el) => el.tagName + '.' + (el.className || '')")
            logger.info("Using scroll element: %s", tag)
        return self._scroller

    async def turn_nodes(self) -> Sequence[PlaywrightTurnNode]:
        nodes: list[PlaywrightTurnNode] = []
        for handle in await self.page.query_selector_all(TURN_SELECTOR):
            key = await handle.evaluate(_STAMP_KEY_JS)
            nodes.append(PlaywrightTurnNode(handle, key))
        return nodes

    async def release(self, nodes: Sequence[PlaywrightTurnNode]) -> None:
        """Dispose the element handles one turn_nodes() call created."""
        for node in nodes:
            await node.dispose()

    async def scroll_metrics(self) -> ScrollMetrics:
        scroller = await self._scroll_container()
        top, client_height, scroll_height = await scroller.evaluate(_METRICS_JS)
        return ScrollMetrics(top=top, client_height=client_height, scroll_height=scroll_height)

    async def scroll_to(self, top: float) -> None:
        scroller = await self._scroll_container()
        await scroller.evaluate(_SCROLL_TO_JS, top)

    async def scroll_by(self, delta: float) -> None:
        scroller = await self._scroll_container()
        await scroller.evaluate(_SCROLL_BY_JS, delta)

    async def wait_for_turns(self, timeout_ms: float = 30000) -> None:
        await self.page.wait_for_selector(TURN_SELECTOR, timeout=timeout_ms)

    async def title(self) -> Optional[str]:
        element = await self.page.query_selector(TITLE_SELECTOR)
        if element is None:
            return None
        try:
            text = (await element.text_content() or "").strip()
        finally:
            await element.dispose()
        return text or None

    async def detect_mode(self) -> ViewMode:
        """Tell Raw Mode (plain text containers) from Rendered Mode (cmark nodes)."""
        first_user = await self.page.query_selector(FIRST_USER_TURN_SELECTOR)
        if first_user is not None:
            try:
                has_raw, has_rendered = await first_user.evaluate(
                    "(el, [raw, rendered]) => [!!el.querySelector(raw), !!el.querySelector(rendered)]",
                    [RAW_TEXT_SELECTOR, RENDERED_TEXT_SELECTOR],
                )
            finally:
                await first_user.dispose()
            if has_raw and not has_rendered:
                logger.info("Detected mode: raw")
                return "raw"
            if has_rendered and not has_raw:
                logger.info("Detected mode: rendered")
                return "rendered"
        logger.warning("Could not detect mode, assuming rendered")
        return "rendered"

    async def toggle_raw_mode(self) -> bool:
        """Flip Raw Mode through the "more actions" menu. Returns whether it was clicked."""
        clicked = await self.page.evaluate(
            """([moreSel, itemSel]) => {
                const more = document.querySelector(moreSel);
                if (!more) return null;
                more.click();
                for (const item of document.querySelectorAll(itemSel)) {
                    if (item.textContent.includes('Raw Mode')) { item.click(); return true; }
                }
                document.body.click();
                return false;
            }""",
            [MORE_ACTIONS_SELECTOR, MENU_ITEM_SELECTOR],
        )
        if clicked is None:
            logger.error("'More actions' button not found")
            return False
        if not clicked:
            logger.error("'Raw Mode' entry not found in menu")
            return False

        await asyncio.sleep(RAW_MODE_RENDER_DELAY_MS / 1000)
        logger.info("Raw Mode toggled")
        return True

    @asynccontextmanager
    async def raw_mode(self) -> AsyncIterator[bool]:
        """Switch to Raw Mode for the duration of the block and restore afterwards.

        Yields whether the view was toggled. Extraction continues in Rendered
        Mode if the toggle fails.
        """
        toggled = False
        if await self.detect_mode() != "raw":
            toggled = await self.toggle_raw_mode()
            if not toggled:
                logger.warning("Failed to switch to Raw Mode, continuing anyway")
        try:
            yield toggled
        finally:
            if toggled:
                logger.info("Restoring original mode")
                await self.toggle_raw_mode()
