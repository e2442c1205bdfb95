from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

StreamEvent = Dict[str, Any]
Listener = Callable[[StreamEvent], None]

CHANNEL_NAMES = (
    "status",
    "text",
    "gui",
    "thread_id",
    "mutation_count",
    "extracted_range",
)


class StreamChannel:
  """Append-only output sequence with an explicit, one-time completion.

  Writes after `done()` are ignored. Listeners that fail are dropped, so a
  caller that went away never turns a write into an error.
  """

  def __init__(self, name: str, initial: Any = None) -> None:
    self.name = name
    self._value = initial
    self._closed = False
    self._events: List[StreamEvent] = []
    self._listeners: List[Listener] = []
    if initial is not None:
      self._record("update", initial)

  @property
  def value(self) -> Any:
    return self._value

  @property
  def closed(self) -> bool:
    return self._closed

  @property
  def events(self) -> List[StreamEvent]:
    return list(self._events)

  def listen(self, listener: Listener) -> None:
    for event in self._events:
      listener(event)
    if not self._closed:
      self._listeners.append(listener)

  def unlisten(self, listener: Listener) -> None:
    try:
      self._listeners.remove(listener)
    except ValueError:
      return

  def _record(self, op: str, value: Any) -> None:
    event = {"channel": self.name, "op": op, "value": value}
    self._events.append(event)
    for listener in list(self._listeners):
      try:
        listener(event)
      except Exception as exc:
        logger.debug("dropping %s listener: %r", self.name, exc)
        self.unlisten(listener)

  def update(self, value: Any) -> bool:
    if self._closed:
      return False
    self._value = value
    self._record("update", value)
    return True

  def append(self, delta: str) -> bool:
    if self._closed:
      return False
    self._value = f"{self._value or ''}{delta}"
    self._record("append", delta)
    return True

  def done(self) -> bool:
    if self._closed:
      return False
    self._closed = True
    self._record("done", self._value)
    self._listeners.clear()
    return True


class StreamChannelSet:
  """The six per-request channels, closed together by `close()`."""

  def __init__(self, thread_id: str) -> None:
    self.status = StreamChannel("status", "conversation.init")
    self.text = StreamChannel("text", "")
    self.gui = StreamChannel("gui")
    self.thread_id = StreamChannel("thread_id", thread_id)
    self.mutation_count = StreamChannel("mutation_count", 0)
    self.extracted_range = StreamChannel("extracted_range")
    self._queues: Dict[int, Listener] = {}

  @property
  def channels(self) -> List[StreamChannel]:
    return [getattr(self, name) for name in CHANNEL_NAMES]

  @property
  def closed(self) -> bool:
    return all(channel.closed for channel in self.channels)

  def close(self) -> None:
    for channel in self.channels:
      channel.done()

  def subscribe(self) -> "asyncio.Queue[StreamEvent]":
    """Merged feed of every channel, replaying what was already written."""
    queue: "asyncio.Queue[StreamEvent]" = asyncio.Queue()
    listener: Listener = queue.put_nowait
    self._queues[id(queue)] = listener
    for channel in self.channels:
      channel.listen(listener)
    return queue

  def unsubscribe(self, queue: "asyncio.Queue[StreamEvent]") -> None:
    listener = self._queues.pop(id(queue), None)
    if listener is None:
      return
    for channel in self.channels:
      channel.unlisten(listener)

  def snapshot(self) -> Dict[str, Any]:
    return {channel.name: channel.value for channel in self.channels}
