from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from .config import (
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
    ASSISTANT_TIMEOUT_SECONDS,
    TIME_RANGE_TIMEOUT_SECONDS,
)
from .utils import _log_debug

async_client: Optional[AsyncOpenAI] = AsyncOpenAI(
    api_key=OPENAI_API_KEY,
    base_url=OPENAI_BASE_URL,
    timeout=ASSISTANT_TIMEOUT_SECONDS,
) if OPENAI_API_KEY else None


def get_async_client() -> AsyncOpenAI:
  if async_client is None:
    raise RuntimeError("OPENAI_API_KEY is not set")
  return async_client


def get_time_range_client() -> AsyncOpenAI:
  """Fail-fast variant of the shared client: hard timeout, no retries."""
  return get_async_client().with_options(timeout=TIME_RANGE_TIMEOUT_SECONDS,
                                         max_retries=0)


def _debug_print(kind: str, model: str, messages: List[Dict[str, Any]],
                 raw_output: Any) -> None:
  _log_debug(f"\n[LLM DEBUG] kind={kind} model={model}")
  try:
    _log_debug("[LLM DEBUG] messages:\n" +
               json.dumps(messages, ensure_ascii=False, indent=2, default=str))
  except Exception:
    _log_debug(f"[LLM DEBUG] messages: {messages!r}")
  _log_debug(f"[LLM DEBUG] output: {raw_output!r}")
