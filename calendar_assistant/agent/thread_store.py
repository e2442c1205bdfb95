from __future__ import annotations

from collections import OrderedDict
from typing import List, Optional, Protocol, Sequence

from ..config import MAX_THREAD_MESSAGES, MAX_THREADS
from .schemas import Message, ToolResultMessage


class ThreadStore(Protocol):

  def get(self, thread_id: str) -> List[Message]:
    ...

  def put(self, thread_id: str, history: Sequence[Message]) -> None:
    ...

  def evict_oldest(self) -> Optional[str]:
    ...


class InMemoryThreadStore:
  """Process-local thread transcripts.

  `put` keeps only the newest `max_messages` entries of a thread. The store
  holds at most `max_threads` threads and drops the least recently written
  one when full. Writes replace the whole history, so two concurrent requests
  on the same thread id are last-write-wins.
  """

  def __init__(self,
               max_messages: int = MAX_THREAD_MESSAGES,
               max_threads: int = MAX_THREADS) -> None:
    if max_messages < 1:
      raise ValueError("max_messages must be positive")
    self.max_messages = max_messages
    self.max_threads = max_threads
    self._threads: "OrderedDict[str, List[Message]]" = OrderedDict()

  def __contains__(self, thread_id: object) -> bool:
    return thread_id in self._threads

  def __len__(self) -> int:
    return len(self._threads)

  def get(self, thread_id: str) -> List[Message]:
    return list(self._threads.get(thread_id, ()))

  def put(self, thread_id: str, history: Sequence[Message]) -> None:
    kept = list(history)[-self.max_messages:]
    # a cut can separate tool results from the request that produced them
    while kept and isinstance(kept[0], ToolResultMessage):
      kept.pop(0)
    self._threads[thread_id] = kept
    self._threads.move_to_end(thread_id)
    while self.max_threads > 0 and len(self._threads) > self.max_threads:
      self.evict_oldest()

  def evict_oldest(self) -> Optional[str]:
    if not self._threads:
      return None
    thread_id, _ = self._threads.popitem(last=False)
    return thread_id


_default_store: Optional[InMemoryThreadStore] = None


def get_thread_store() -> InMemoryThreadStore:
  global _default_store
  if _default_store is None:
    _default_store = InMemoryThreadStore()
  return _default_store
