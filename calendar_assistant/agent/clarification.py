from __future__ import annotations

import re
from typing import Dict, Iterable, Mapping, Optional, Pattern, Sequence, Tuple, Union

from ..utils import is_present, normalize_text
from .schemas import ExtractedTimeRange, ToolCallRequest

PatternLike = Union[str, Pattern[str]]

CLARIFICATION_PROMPT = """Before I change your calendar, a few quick questions:

1. **Date range**: which days or weeks should this cover?
2. **Frequency and duration**: how often, and how long each time?
3. **Preferred time of day**: morning, afternoon, or evening?
4. **Conflicts**: should I avoid overlapping with your existing events?
5. **Reminders**: how long beforehand should I remind you?"""

# "Do not act yet" phrasing. Wins over every other rule.
DEFAULT_NO_ACTION_PATTERNS: Tuple[str, ...] = (
    r"\b(?:don'?t|do not|dont)\s+(?:\w+\s+){0,3}(?:yet|now)\b",
    r"\bnot yet\b",
    r"\bhold off\b",
    r"\b(?:ask|check with|confirm with)\s+me\s+(?:first|before)\b",
    r"\bjust\s+(?:asking|checking|wondering|curious|suggest(?:ions?)?)\b",
    r"\bonly\s+suggest\b",
    r"\bwithout\s+(?:booking|scheduling|creating|adding|changing|deleting)\b",
    r"先别",
    r"先不要",
    r"暂时不要",
    r"(?<!要)不要(?:直接)?(?:安排|添加|创建|删除|修改|改)",
    # 别 inside words such as 特别 or 区别 is not a prohibition
    r"(?<![特区分级类性差告识辨派个])别(?:直接)?(?:安排|添加|创建|删除|修改|动)",
    r"先(?:问|确认|跟我确认|给我建议)",
    r"只是问问",
    r"아직\s*하지\s*마",
    r"하지\s*말고",
    r"일단\s*보류",
    r"먼저\s*(?:물어|확인)",
)

DEFAULT_SCHEDULING_INTENT_PATTERNS: Tuple[str, ...] = (
    r"\b(?:schedul\w*|book\w*|plan\w*|arrang\w*|reschedul\w*|reserve\w*)\b",
    r"\bset\s+up\b",
    r"\bblock\s+(?:off|out)?\s*(?:some\s+)?time\b",
    r"\bfind\s+(?:a\s+|some\s+)?time\b",
    r"\b(?:add|put|create)\b.*\b(?:event|meeting|session|calendar|reminder)\b",
    r"\bremind\s+me\b",
    r"安排|预约|预订|计划|规划|日程|提醒|添加|加个|定个|约个|找时间|复习|学习计划",
    r"일정|예약|잡아|추가|등록|계획",
)

DEFAULT_AMBIGUOUS_TIME_PATTERNS: Tuple[str, ...] = (
    r"\bsome\s*time\b",
    r"\bsoon(?:ish)?\b",
    r"\blater\b",
    r"\bwhenever\b",
    r"\bat some point\b",
    r"\bany\s*time\b",
    r"\bwhen(?:ever)?\s+i(?:'m|\s+am)\s+free\b",
    r"\b(?:next|coming)\s+few\s+(?:days|weeks)\b",
    r"\bin the near future\b",
    r"\bone of these days\b",
    r"\bfind\s+(?:a\s+|some\s+)?time\b",
    r"最近|近期|找时间|有空|抽空|改天|过几天|这段时间|什么时候|随便|尽快",
    r"언젠가|나중에|시간\s*날\s*때|조만간|아무\s*때나|적당히",
)

# Arguments that make a mutating call executable as-is.
DEFAULT_REQUIRED_ARGUMENTS: Dict[str, Tuple[str, ...]] = {
    "schedule_event": ("start_time", "end_time", "summary"),
    "edit_event": ("event_id", "start_time", "end_time", "summary"),
    "delete_event": ("event_id",),
}


def _compile(patterns: Iterable[PatternLike]) -> Tuple[Pattern[str], ...]:
  compiled = []
  for pattern in patterns:
    if isinstance(pattern, str):
      pattern = re.compile(pattern, re.IGNORECASE)
    compiled.append(pattern)
  return tuple(compiled)


class ClarificationGate:
  """Decides whether mutating tool calls must wait for user confirmation.

  Pure: no I/O and no state beyond the pattern sets given at construction.
  """

  def __init__(self,
               no_action_patterns: Sequence[PatternLike] = DEFAULT_NO_ACTION_PATTERNS,
               scheduling_intent_patterns: Sequence[PatternLike] = DEFAULT_SCHEDULING_INTENT_PATTERNS,
               ambiguous_time_patterns: Sequence[PatternLike] = DEFAULT_AMBIGUOUS_TIME_PATTERNS,
               required_arguments: Optional[Mapping[str, Sequence[str]]] = None,
               prompt: str = CLARIFICATION_PROMPT) -> None:
    self.no_action_patterns = _compile(no_action_patterns)
    self.scheduling_intent_patterns = _compile(scheduling_intent_patterns)
    self.ambiguous_time_patterns = _compile(ambiguous_time_patterns)
    required = DEFAULT_REQUIRED_ARGUMENTS if required_arguments is None else required_arguments
    self.required_arguments = {name: tuple(keys) for name, keys in required.items()}
    self.prompt = prompt

  def extend(self,
             no_action: Sequence[PatternLike] = (),
             scheduling_intent: Sequence[PatternLike] = (),
             ambiguous_time: Sequence[PatternLike] = ()) -> "ClarificationGate":
    return ClarificationGate(
        no_action_patterns=self.no_action_patterns + _compile(no_action),
        scheduling_intent_patterns=self.scheduling_intent_patterns + _compile(scheduling_intent),
        ambiguous_time_patterns=self.ambiguous_time_patterns + _compile(ambiguous_time),
        required_arguments=self.required_arguments,
        prompt=self.prompt,
    )

  @staticmethod
  def _matches(patterns: Tuple[Pattern[str], ...], text: str) -> bool:
    return any(pattern.search(text) for pattern in patterns)

  def is_mutating(self, call: ToolCallRequest) -> bool:
    return call.name in self.required_arguments

  def has_sufficient_arguments(self, call: ToolCallRequest) -> bool:
    required = self.required_arguments.get(call.name)
    if required is None:
      return True
    args = call.args
    return all(is_present(args.get(key)) for key in required)

  def expresses_no_action(self, question: str) -> bool:
    return self._matches(self.no_action_patterns, normalize_text(question))

  def expresses_scheduling_intent(self, question: str) -> bool:
    return self._matches(self.scheduling_intent_patterns, normalize_text(question))

  def has_ambiguous_time(self, question: str) -> bool:
    return self._matches(self.ambiguous_time_patterns, normalize_text(question))

  def should_defer(self,
                   question: str,
                   extracted_range: Optional[ExtractedTimeRange],
                   tool_calls: Sequence[ToolCallRequest]) -> bool:
    mutating = [call for call in tool_calls if self.is_mutating(call)]
    if not mutating:
      return False
    if self.expresses_no_action(question):
      return True
    if all(self.has_sufficient_arguments(call) for call in mutating):
      return False
    if not self.expresses_scheduling_intent(question):
      return False
    return self.has_ambiguous_time(question) or extracted_range is None


default_gate = ClarificationGate()
