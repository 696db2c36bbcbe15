"""Shared fixtures: fake credentials and an in-memory Postmark client."""

import os

import pytest

# Ensure tests never reach a real Postmark account
os.environ.setdefault("POSTMARK_SERVER_TOKEN", "test-server-token")
os.environ.setdefault("DEFAULT_SENDER_EMAIL", "sender@example.com")
os.environ.setdefault("DEFAULT_MESSAGE_STREAM", "outbound")

from email_config import ProviderCredentials
from postmark_client import DeliveryStats, Template
from tool_dispatch import ToolDispatcher


class FakePostmark:
    """Stands in for PostmarkClient. Records every call; `error` makes calls fail."""

    def __init__(self):
        self.calls = []
        self.error = None
        self.closed = False
        self.templates = [
            Template(name="Welcome", id=101, alias="welcome", subject="Welcome aboard"),
            Template(name="Receipt", id=102),
        ]
        self.stats = DeliveryStats()

    def _record(self, name, payload=None):
        self.calls.append((name, payload))
        if self.error is not None:
            raise self.error

    async def send_message(self, message):
        self._record("send_message", message)
        return "msg-0001"

    async def send_templated_message(self, message):
        self._record("send_templated_message", message)
        return "msg-0002"

    async def list_templates(self):
        self._record("list_templates")
        return list(self.templates)

    async def fetch_stats(self, tag=None, from_date=None, to_date=None):
        self._record("fetch_stats", {"tag": tag, "from_date": from_date, "to_date": to_date})
        return self.stats

    async def aclose(self):
        self.closed = True


@pytest.fixture
def credentials():
    return ProviderCredentials(
        server_token="test-server-token",
        default_sender="sender@example.com",
        default_message_stream="outbound",
    )


@pytest.fixture
def fake_postmark():
    return FakePostmark()


@pytest.fixture
def dispatcher(fake_postmark, credentials):
    return ToolDispatcher(fake_postmark, credentials)
