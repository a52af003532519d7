"""Unit tests for capturing the conversation payload off network responses."""

import json

import pytest

from studio_export.browser.capture import PayloadCapture, capture_endpoint


class FakeResponse:
    def __init__(self, url, body):
        self.url = url
        self._body = body

    async def text(self):
        return self._body


def prompt_body(title):
    return ")]}'\n" + json.dumps(["prompts/abc", None, None, None, [title]])


@pytest.mark.unit
def test_capture_endpoint_matches_prompt_calls_only():
    assert capture_endpoint("https://x.test/$rpc/MakerSuiteService/ResolveDriveResource") == "ResolveDriveResource"
    assert capture_endpoint("https://x.test/$rpc/MakerSuiteService/UpdatePrompt") == "UpdatePrompt"
    assert capture_endpoint("https://x.test/$rpc/MakerSuiteService/ListModels") is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_latest_prompt_response_wins_and_is_wrapped():
    capture = PayloadCapture()

    await capture.handle_response(FakeResponse("https://x.test/CreatePrompt", prompt_body("first")))
    await capture.handle_response(FakeResponse("https://x.test/UpdatePrompt", prompt_body("second")))

    assert await capture.wait(timeout_ms=10) == [["prompts/abc", None, None, None, ["second"]]]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unrelated_and_broken_responses_are_ignored():
    capture = PayloadCapture()

    await capture.handle_response(FakeResponse("https://x.test/ListModels", prompt_body("other")))
    await capture.handle_response(FakeResponse("https://x.test/ResolveDriveResource", ")]}'\nnot json"))
    await capture.handle_response(FakeResponse("https://x.test/ResolveDriveResource", "[]"))

    assert await capture.wait(timeout_ms=10) is None
