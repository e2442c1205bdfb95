"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from calendar_assistant.agent.schemas import AssistantConfiguration, ChatSession
from tests.helpers import FakeProvider


@pytest.fixture
def assistant_config() -> AssistantConfiguration:
    tools = tuple(
        {"type": "function", "function": {"name": name, "parameters": {"type": "object"}}}
        for name in ("get_calendar", "schedule_event", "edit_event", "delete_event"))
    return AssistantConfiguration(instructions="You manage calendars.", tools=tools)


@pytest.fixture
def session() -> ChatSession:
    return ChatSession(access_token="token-123", user_name="Dana", user_email="dana@example.com")


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()
