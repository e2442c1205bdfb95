"""Fakes shared by the test modules."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Dict, Iterable, List, Optional

from calendar_assistant.agent.schemas import AssistantConfiguration

FIXED_NOW = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)


def tool_call(name: str, arguments: Any = None, call_id: Optional[str] = None) -> SimpleNamespace:
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments or {})
    return SimpleNamespace(
        id=call_id,
        type="function",
        function=SimpleNamespace(name=name, arguments=arguments),
    )


def completion(content: Optional[str] = None,
               tool_calls: Optional[List[SimpleNamespace]] = None,
               function_call: Optional[SimpleNamespace] = None) -> SimpleNamespace:
    message = SimpleNamespace(content=content,
                              tool_calls=tool_calls,
                              function_call=function_call)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class _FakeCompletions:
    def __init__(self, responses: Iterable[Any]):
        self._responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(response, BaseException):
            raise response
        return response


class FakeClient:
    """Scripted stand-in for AsyncOpenAI; the last response repeats."""

    def __init__(self, *responses: Any):
        self.completions = _FakeCompletions(responses)
        self.chat = SimpleNamespace(completions=self.completions)

    @property
    def calls(self) -> List[Dict[str, Any]]:
        return self.completions.calls


class FakeProvider:
    """In-memory calendar with the GoogleCalendarProvider surface."""

    def __init__(self, events: Optional[List[Dict[str, Any]]] = None,
                 timezone_name: Any = "Asia/Seoul",
                 error: Optional[Exception] = None):
        self.events = list(events or [])
        self.timezone_name = timezone_name
        self.error = error
        self.listed: List[tuple] = []
        self.inserted: List[tuple] = []
        self.updated: List[tuple] = []
        self.deleted: List[tuple] = []

    def _maybe_fail(self) -> None:
        if self.error is not None:
            raise self.error

    def list_events(self, calendar_id, time_min, time_max):
        self._maybe_fail()
        self.listed.append((calendar_id, time_min, time_max))
        return list(self.events)

    def insert_event(self, calendar_id, body):
        self._maybe_fail()
        self.inserted.append((calendar_id, body))
        return {"id": "evt-new", **body}

    def update_event(self, calendar_id, event_id, body):
        self._maybe_fail()
        self.updated.append((calendar_id, event_id, body))
        return {"id": event_id, **body}

    def delete_event(self, calendar_id, event_id):
        self._maybe_fail()
        self.deleted.append((calendar_id, event_id))

    def get_calendar_timezone(self, calendar_id="primary"):
        if isinstance(self.timezone_name, Exception):
            raise self.timezone_name
        return self.timezone_name


class StaticConfig:
    def __init__(self, config: AssistantConfiguration):
        self.config = config
        self.calls = 0

    async def load(self) -> AssistantConfiguration:
        self.calls += 1
        return self.config


def http_error(status: int, message: str = "Not Found", reason: str = "notFound"):
    from googleapiclient.errors import HttpError

    content = json.dumps({
        "error": {
            "code": status,
            "message": message,
            "errors": [{"reason": reason, "message": message}],
        }
    }).encode("utf-8")
    return HttpError(SimpleNamespace(status=status, reason=message), content)
