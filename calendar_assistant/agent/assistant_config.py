from __future__ import annotations

import asyncio
import json
import logging
import pathlib
from typing import Callable, Optional, Sequence

from ..config import (
    ASSISTANT_DIR,
    ASSISTANT_FUNCTION_FILES,
    ASSISTANT_INSTRUCTION_FILE,
)
from .schemas import AssistantConfiguration

logger = logging.getLogger(__name__)


def _read_text(path: pathlib.Path) -> str:
  return path.read_text(encoding="utf-8")


class AssistantConfigCache:
  """Memoized instructions + tool schemas.

  Concurrent first callers share one in-flight load. A failed load clears the
  slot so the next call starts over; a successful one is kept for the life of
  the process.
  """

  def __init__(self,
               base_dir: pathlib.Path,
               instruction_file: str = ASSISTANT_INSTRUCTION_FILE,
               function_files: Sequence[str] = ASSISTANT_FUNCTION_FILES,
               reader: Callable[[pathlib.Path], str] = _read_text) -> None:
    self._base_dir = pathlib.Path(base_dir)
    self._instruction_file = instruction_file
    self._function_files = tuple(function_files)
    self._reader = reader
    self._value: Optional[AssistantConfiguration] = None
    self._inflight: Optional[asyncio.Future] = None

  @property
  def loaded(self) -> bool:
    return self._value is not None

  async def load(self) -> AssistantConfiguration:
    if self._value is not None:
      return self._value
    if self._inflight is None:
      self._inflight = asyncio.ensure_future(self._load_from_disk())
    inflight = self._inflight
    try:
      value = await asyncio.shield(inflight)
    except Exception:
      if self._inflight is inflight:
        self._inflight = None
      raise
    self._value = value
    self._inflight = None
    return value

  async def _load_from_disk(self) -> AssistantConfiguration:
    functions_dir = self._base_dir / "functions"
    paths = [self._base_dir / self._instruction_file]
    paths.extend(functions_dir / name for name in self._function_files)
    instructions, *functions = await asyncio.gather(
        *(asyncio.to_thread(self._reader, path) for path in paths))

    tools = []
    for name, raw in zip(self._function_files, functions):
      schema = json.loads(raw)
      if not isinstance(schema, dict) or not isinstance(schema.get("name"), str):
        raise ValueError(f"Tool schema {name} has no function name")
      tools.append({"type": "function", "function": schema})

    logger.info("loaded assistant configuration from %s (%d tools)",
                self._base_dir, len(tools))
    return AssistantConfiguration(instructions=instructions, tools=tuple(tools))


_default_cache: Optional[AssistantConfigCache] = None


def get_assistant_config_cache() -> AssistantConfigCache:
  global _default_cache
  if _default_cache is None:
    _default_cache = AssistantConfigCache(ASSISTANT_DIR)
  return _default_cache
