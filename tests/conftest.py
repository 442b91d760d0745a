import json

import httpx
import pytest

from expense_ocr.receipt.base import ExtractionReply, RecognitionResult
from expense_ocr.receipt.errors import UpstreamError

SCENARIO_A_TEXT = "STORE X\nMilk 3.50\nBread 2.00\nTotal 5.50"
SCENARIO_A_REPLY = (
    '```json\n{"merchant":"STORE X","total":5.50,"items":[{"description":"Milk","price":3.50},'
    '{"description":"Bread","price":2.00}],"category":"Other"}\n```'
)


class FakeRecognizer:
    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def recognize_text(self, image_base64):
        self.calls.append(image_base64)
        if self.error:
            raise self.error
        return RecognitionResult(text=self.text)


class FakeExtractor:
    def __init__(self, reply="", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def extract_fields(self, source_text):
        self.calls.append(source_text)
        if self.error:
            raise self.error
        return ExtractionReply(raw_text=self.reply)


class RecordingTransport(httpx.MockTransport):
    """MockTransport that replays a list of responses/exceptions and keeps the requests."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests = []
        super().__init__(self._handle)

    def _handle(self, request):
        self.requests.append(request)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def sent_json(self, index=0):
        return json.loads(self.requests[index].content)


@pytest.fixture
def scenario_a_reply():
    return SCENARIO_A_REPLY


@pytest.fixture
def scenario_a_text():
    return SCENARIO_A_TEXT


@pytest.fixture
def fake_recognizer():
    return FakeRecognizer


@pytest.fixture
def fake_extractor():
    return FakeExtractor


@pytest.fixture
def transport():
    return RecordingTransport


@pytest.fixture
def upstream_403():
    return UpstreamError("vision", 403, '{"error": {"code": 403, "message": "API key not valid"}}')
