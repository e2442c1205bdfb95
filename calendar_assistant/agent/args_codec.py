from __future__ import annotations

import json
from typing import Any, Dict, Mapping


def parse_tool_arguments(raw: Any) -> Dict[str, Any]:
  """Decode a tool-call argument payload. Anything but a JSON object is {}."""
  if raw is None:
    return {}
  if isinstance(raw, Mapping):
    return dict(raw)
  if isinstance(raw, (bytes, bytearray)):
    raw = raw.decode("utf-8", errors="ignore")
  if not isinstance(raw, str) or not raw.strip():
    return {}
  try:
    parsed = json.loads(raw)
  except ValueError:
    return {}
  return parsed if isinstance(parsed, dict) else {}


def dump_tool_arguments(args: Any) -> str:
  if isinstance(args, str):
    return json.dumps(parse_tool_arguments(args), ensure_ascii=False)
  if not isinstance(args, Mapping):
    return "{}"
  try:
    return json.dumps(dict(args), ensure_ascii=False)
  except (TypeError, ValueError):
    return "{}"


def dump_tool_output(payload: Any) -> str:
  return json.dumps(payload, ensure_ascii=False, default=str)
