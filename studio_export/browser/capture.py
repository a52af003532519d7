"""Capture the conversation payload from a live page's network traffic."""

from __future__ import annotations

import asyncio
from typing import Optional, Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from studio_export.constants import CAPTURE_ENDPOINTS, PAYLOAD_CAPTURE_WAIT_MS
from studio_export.core.errors import MalformedPayloadError
from studio_export.core.wire import JsonValue, decode_envelope
from studio_export.logging_config import get_logger

logger = get_logger(__name__)


class CapturedResponse(Protocol):
    """The part of playwright.async_api.Response a capture needs."""

    @property
    def url(self) -> str: ...

    async def text(self) -> str: ...


def capture_endpoint(url: str) -> Optional[str]:
    """Name of the prompt endpoint url belongs to, or None."""
    return next((name for name in CAPTURE_ENDPOINTS if name in url), None)


class PayloadCapture:
    """Keep the latest prompt payload seen on a page.

    Attach before navigating so the initial load is seen too.
    """

    def __init__(self) -> None:
        self.payload: Optional[JsonValue] = None
        self._captured = asyncio.Event()

    def attach(self, page: Page) -> None:
        page.on("response", self.handle_response)

    async def handle_response(self, response: CapturedResponse) -> None:
        endpoint = capture_endpoint(response.url)
        if endpoint is None:
            return
        try:
            raw = await response.text()
            payload = decode_envelope(raw)
        except (MalformedPayloadError, PlaywrightError, UnicodeDecodeError) as e:
            logger.error("Capture of %s failed: %s", endpoint, e)
            return
        if not isinstance(payload, list) or not payload:
            logger.debug("Ignoring empty %s response", endpoint)
            return

        self.payload = payload
        self._captured.set()
        logger.info("%s intercepted. Size: %d chars", endpoint, len(raw))

    async def wait(self, timeout_ms: float = PAYLOAD_CAPTURE_WAIT_MS) -> Optional[JsonValue]:
        """Latest payload, waiting up to timeout_ms for the first one."""
        try:
            await asyncio.wait_for(self._captured.wait(), timeout_ms / 1000)
        except asyncio.TimeoutError:
            logger.warning("No conversation payload captured within %dms", timeout_ms)
        return self.payload
