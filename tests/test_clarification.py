from __future__ import annotations

import json
from datetime import datetime, timezone

from calendar_assistant.agent.clarification import CLARIFICATION_PROMPT, ClarificationGate
from calendar_assistant.agent.schemas import ExtractedTimeRange, ToolCallRequest

RANGE = ExtractedTimeRange(start=datetime(2025, 3, 4, tzinfo=timezone.utc),
                           end=datetime(2025, 3, 5, tzinfo=timezone.utc))


def _call(name, **arguments):
    return ToolCallRequest(id=f"call_{name}", name=name, arguments=json.dumps(arguments))


def test_read_only_calls_are_never_deferred():
    gate = ClarificationGate()
    calls = [_call("get_calendar", start_time="2025-03-04T00:00:00Z")]
    assert not gate.should_defer("don't change anything yet, what's on tomorrow?", None, calls)


def test_delete_with_identifier_goes_through():
    gate = ClarificationGate()
    calls = [_call("delete_event", event_id="E123")]
    assert not gate.should_defer("delete event with id E123", None, calls)


def test_vague_chinese_scheduling_request_is_deferred():
    gate = ClarificationGate()
    calls = [_call("schedule_event", summary="复习")]
    assert gate.should_defer("安排一下复习，最近找时间", None, calls)


def test_no_action_phrasing_overrides_complete_arguments():
    gate = ClarificationGate()
    calls = [_call("schedule_event", summary="Gym",
                   start_time="2025-03-04T07:00:00Z", end_time="2025-03-04T08:00:00Z")]
    assert gate.should_defer("Plan my gym sessions but don't book anything yet", RANGE, calls)
    assert gate.should_defer("先别安排，给我看看方案", RANGE, calls)


def test_complete_arguments_are_executed_even_when_vague():
    gate = ClarificationGate()
    calls = [_call("schedule_event", summary="Gym",
                   start_time="2025-03-04T07:00:00Z", end_time="2025-03-04T08:00:00Z")]
    assert not gate.should_defer("schedule gym sometime soon", None, calls)


def test_incomplete_call_without_scheduling_intent_is_left_to_the_model():
    gate = ClarificationGate()
    calls = [_call("edit_event", event_id="E1", summary="Renamed")]
    assert not gate.should_defer("rename E1 to Renamed", None, calls)


def test_scheduling_intent_without_range_is_deferred():
    gate = ClarificationGate()
    calls = [_call("schedule_event", summary="Dentist")]
    assert gate.should_defer("schedule a dentist appointment", None, calls)
    assert not gate.should_defer("schedule a dentist appointment", RANGE, calls)


def test_ambiguous_time_defers_even_with_range():
    gate = ClarificationGate()
    calls = [_call("schedule_event", summary="Catch up")]
    assert gate.should_defer("book a catch up with Sam sometime next week", RANGE, calls)


def test_prohibitive_characters_inside_ordinary_words_are_ignored():
    gate = ClarificationGate()
    calls = [_call("schedule_event", summary="面试",
                   start_time="2025-03-04T15:00:00+08:00", end_time="2025-03-04T16:00:00+08:00")]
    assert not gate.expresses_no_action("明天下午3点给我特别安排一个面试")
    assert not gate.should_defer("明天下午3点给我特别安排一个面试", None, calls)
    assert not gate.expresses_no_action("要不要安排一下周会？")
    assert gate.expresses_no_action("别安排了")
    assert gate.expresses_no_action("你不要直接安排")


def test_blank_and_missing_arguments_are_insufficient():
    gate = ClarificationGate()
    assert not gate.has_sufficient_arguments(_call("delete_event", event_id="  "))
    assert not gate.has_sufficient_arguments(_call("delete_event"))
    assert gate.has_sufficient_arguments(_call("get_calendar"))


def test_extend_adds_patterns_without_changing_the_base_gate():
    gate = ClarificationGate()
    extended = gate.extend(no_action=[r"\bpas maintenant\b"])
    assert extended.expresses_no_action("Planifie ça, mais pas maintenant")
    assert not gate.expresses_no_action("Planifie ça, mais pas maintenant")
    assert extended.prompt == CLARIFICATION_PROMPT


def test_prompt_lists_five_questions():
    lines = [line for line in CLARIFICATION_PROMPT.splitlines() if line[:2] in {"1.", "2.", "3.", "4.", "5."}]
    assert len(lines) == 5
