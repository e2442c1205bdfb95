from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Optional

from openai import AsyncOpenAI
from pydantic import ValidationError

from ..config import TIME_RANGE_MODEL
from ..llm import _debug_print, get_time_range_client
from ..utils import now_utc, parse_timestamp, to_utc_iso
from .schemas import ExtractedTimeRange

logger = logging.getLogger(__name__)

TIME_RANGE_SYSTEM_PROMPT = (
    "Extract a calendar time range from user text. Return JSON only with "
    '{ "start": ISO8601 string, "end": ISO8601 string } when a time range is '
    "clearly inferable. If unclear or absent, return "
    '{ "start": null, "end": null }. Use UTC ISO8601 format and ensure end is '
    "after start.")


def parse_time_range_payload(content: Any) -> Optional[ExtractedTimeRange]:
  if not isinstance(content, str) or not content.strip():
    return None
  try:
    parsed = json.loads(content)
  except ValueError:
    return None
  if not isinstance(parsed, dict):
    return None
  start = parse_timestamp(parsed.get("start"))
  end = parse_timestamp(parsed.get("end"))
  if start is None or end is None:
    return None
  try:
    return ExtractedTimeRange(start=start, end=end)
  except ValidationError:
    return None


async def extract_time_range(question: str,
                             now: Optional[datetime] = None,
                             client: Optional[AsyncOpenAI] = None
                             ) -> Optional[ExtractedTimeRange]:
  """Best-effort time window for `question`; None whenever anything goes wrong.

  The request runs with a hard timeout and no retries. Callers proceed
  without a hint rather than waiting on this call.
  """
  reference = now or now_utc()
  messages = [
      {
          "role": "system",
          "content": TIME_RANGE_SYSTEM_PROMPT,
      },
      {
          "role": "user",
          "content": f"Now: {to_utc_iso(reference)}\nUser text: {question}",
      },
  ]
  try:
    c = client or get_time_range_client()
    completion = await c.chat.completions.create(
        model=TIME_RANGE_MODEL,
        temperature=0,
        response_format={"type": "json_object"},
        messages=messages,
    )
    choices = getattr(completion, "choices", None) or []
    message = choices[0].message if choices else None
    content = getattr(message, "content", None)
  except Exception as exc:
    logger.debug("time range extraction failed: %r", exc)
    return None

  _debug_print("time_range", TIME_RANGE_MODEL, messages, content)
  return parse_time_range_payload(content)
