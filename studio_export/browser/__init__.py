"""Playwright-backed access to a live chat page."""

from studio_export.browser.capture import PayloadCapture
from studio_export.browser.launch import open_page
from studio_export.browser.page import PlaywrightDocument

__all__ = ["PayloadCapture", "PlaywrightDocument", "open_page"]
