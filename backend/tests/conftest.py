"""
Shared fixtures: settings, a scripted AI service and dataset builders.
"""
import json
import asyncio
import pytest
from chartpilot.core.config import Settings
from chartpilot.core.schemas import InputFile, TabularFile
from chartpilot.services.ai_service import AIService, AIServiceError, ChatResponse
from chartpilot.services.data_extractor import DataExtractor
from chartpilot.services.intent_analyzer import IntentAnalyzer


class FakeAIService(AIService):
    """
    Replies from a script, one entry per call.

    Entries may be dicts/lists (sent as JSON), raw strings, or exceptions
    (raised). An exhausted script raises AIServiceError, like an
    unreachable provider.
    """

    def __init__(self, replies=None, connected=True, delay=0.0):
        self.replies = list(replies or [])
        self.connected = connected
        self.delay = delay
        self.requests = []

    async def chat(self, request):
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.replies:
            raise AIServiceError("AI service unavailable")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        content = reply if isinstance(reply, str) else json.dumps(reply)
        return ChatResponse(content=content, provider="fake")

    async def validate_connection(self):
        return self.connected


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def failing_ai():
    return FakeAIService()


@pytest.fixture
def extractor(settings, failing_ai):
    return DataExtractor(failing_ai, settings)


@pytest.fixture
def analyzer(settings, failing_ai):
    return IntentAnalyzer(failing_ai, settings)


@pytest.fixture
def make_data(extractor):
    """Normalize plain rows into a UnifiedDataStructure."""
    def _make(rows, source="prompt", file_info=None):
        return extractor.normalize_data(rows, source=source, file_info=file_info)
    return _make


@pytest.fixture
def sales_rows():
    return [
        {"region": "North", "sales": 120},
        {"region": "South", "sales": 95},
        {"region": "East", "sales": 130},
        {"region": "West", "sales": 80},
    ]


@pytest.fixture
def time_series_rows():
    return [
        {"date": "2024-01-01", "channel": "online", "revenue": 100, "orders": 10},
        {"date": "2024-02-01", "channel": "store", "revenue": 120, "orders": 12},
        {"date": "2024-03-01", "channel": "online", "revenue": 150, "orders": 14},
        {"date": "2024-04-01", "channel": "store", "revenue": 170, "orders": 18},
    ]


def make_input_file(name="sales.csv", headers=None, rows=None, size=128, content_type="text/csv"):
    table = None
    if headers is not None:
        table = TabularFile(headers=headers, rows=rows or [])
    return InputFile(name=name, size=size, content_type=content_type, table=table)
