from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set

from openai import AsyncOpenAI
from pydantic import BaseModel, ConfigDict

from ..config import ASSISTANT_MODEL, ASSISTANT_TEMPERATURE, MAX_TOOL_ROUNDS
from ..gcal import GoogleCalendarProvider
from ..llm import _debug_print, get_async_client
from ..utils import now_utc, to_utc_iso
from .args_codec import dump_tool_arguments
from .assistant_config import AssistantConfigCache, get_assistant_config_cache
from .clarification import ClarificationGate, default_gate
from .schemas import (
    AssistantConfiguration,
    AssistantMessage,
    ChatSession,
    ExtractedTimeRange,
    Message,
    ToolCallRequest,
    ToolResultMessage,
    UserMessage,
)
from .streams import StreamChannel, StreamChannelSet
from .thread_store import ThreadStore, get_thread_store
from .time_range import extract_time_range
from .tool_dispatcher import ToolDispatcher

logger = logging.getLogger(__name__)

NOT_AUTHENTICATED_TEXT = "Not authenticated"
NO_RESPONSE_TEXT = "No response from model."
ROUND_LIMIT_TEXT = (
    "I couldn't finish this request within the allowed number of steps. "
    "Please try again, or split it into smaller requests.")
GENERIC_ERROR_TEXT = "Failed to process the request."

ProviderFactory = Callable[[str], GoogleCalendarProvider]
RangeExtractor = Callable[..., Any]

_background_tasks: Set[asyncio.Task] = set()


def generate_id() -> str:
  return uuid.uuid4().hex[:16]


class ClientMessage(BaseModel):
  """What the caller gets back right away; the streams fill in afterwards."""
  model_config = ConfigDict(arbitrary_types_allowed=True)

  id: str
  status: Any = ""
  text: Any = None
  gui: Any = None
  thread_id_stream: Optional[StreamChannel] = None
  mutation_count_stream: Optional[StreamChannel] = None
  extracted_range_stream: Optional[StreamChannel] = None
  streams: Optional[StreamChannelSet] = None
  task: Optional[asyncio.Task] = None


def _get(obj: Any, key: str) -> Any:
  if obj is None:
    return None
  if isinstance(obj, dict):
    return obj.get(key)
  return getattr(obj, key, None)


def _arguments_text(raw: Any) -> str:
  return raw if isinstance(raw, str) else dump_tool_arguments(raw)


def requests_from_message(message: Any) -> List[ToolCallRequest]:
  """Both wire shapes (tool_calls and legacy function_call) as one list."""
  requests: List[ToolCallRequest] = []
  for call in _get(message, "tool_calls") or []:
    fn = _get(call, "function")
    requests.append(ToolCallRequest(
        id=_get(call, "id") or f"call_{generate_id()}",
        name=str(_get(fn, "name") or ""),
        arguments=_arguments_text(_get(fn, "arguments")),
    ))
  if requests:
    return requests

  legacy = _get(message, "function_call")
  if legacy is None:
    return []
  return [ToolCallRequest(
      id=f"call_{generate_id()}",
      name=str(_get(legacy, "name") or ""),
      arguments=_arguments_text(_get(legacy, "arguments")),
      legacy=True,
  )]


def _drop_unanswered(history: List[Message]) -> List[Message]:
  """Trim a trailing tool-call request whose results were never recorded."""
  for index in range(len(history) - 1, -1, -1):
    message = history[index]
    if isinstance(message, AssistantMessage) and message.tool_calls:
      answered = sum(1 for m in history[index + 1:] if isinstance(m, ToolResultMessage))
      if answered < len(message.tool_calls):
        return history[:index]
      return history
    if isinstance(message, UserMessage):
      return history
  return history


def _on_task_done(task: asyncio.Task) -> None:
  _background_tasks.discard(task)
  if task.cancelled():
    return
  exc = task.exception()
  if exc is not None:
    logger.error("conversation task failed", exc_info=exc)


class ConversationOrchestrator:
  """Drives the ask-model / run-tools / feed-back loop for one request at a time.

  Collaborators are injected so the loop can run against fakes; the module
  level `submit_message` uses the process-wide defaults.
  """

  def __init__(self,
               client: Optional[AsyncOpenAI] = None,
               store: Optional[ThreadStore] = None,
               config_cache: Optional[AssistantConfigCache] = None,
               gate: Optional[ClarificationGate] = None,
               provider_factory: Optional[ProviderFactory] = None,
               extract_range: Optional[RangeExtractor] = None,
               model: str = ASSISTANT_MODEL,
               temperature: float = ASSISTANT_TEMPERATURE,
               max_rounds: int = MAX_TOOL_ROUNDS,
               clock: Callable[[], datetime] = now_utc) -> None:
    self._client = client
    self.store = store if store is not None else get_thread_store()
    self.config_cache = config_cache or get_assistant_config_cache()
    self.gate = gate or default_gate
    self.provider_factory = provider_factory or (
        lambda token: GoogleCalendarProvider(access_token=token))
    self.extract_range = extract_range or extract_time_range
    self.model = model
    self.temperature = temperature
    self.max_rounds = max_rounds
    self.clock = clock

  @property
  def client(self) -> AsyncOpenAI:
    return self._client or get_async_client()

  async def submit_message(self, question: str, thread_id: Optional[str],
                           session: Optional[ChatSession]) -> ClientMessage:
    if session is None or not session.access_token:
      return ClientMessage(id=generate_id(),
                           status="",
                           text=NOT_AUTHENTICATED_TEXT,
                           gui=None)

    normalized_thread_id = thread_id or generate_id()
    streams = StreamChannelSet(normalized_thread_id)
    task = asyncio.create_task(
        self.run(question, normalized_thread_id, session, streams))
    _background_tasks.add(task)
    task.add_done_callback(_on_task_done)

    return ClientMessage(
        id=generate_id(),
        status=streams.status,
        text=streams.text,
        gui=streams.gui,
        thread_id_stream=streams.thread_id,
        mutation_count_stream=streams.mutation_count,
        extracted_range_stream=streams.extracted_range,
        streams=streams,
        task=task,
    )

  def _system_message(self, config: AssistantConfiguration,
                      session: ChatSession) -> Dict[str, Any]:
    return {
        "role": "system",
        "content": (f"{config.instructions}\n"
                    f"<current_time>{to_utc_iso(self.clock())}</current_time>"
                    f"<current_user>{session.user_name or ''}</current_user>"),
    }

  async def run(self, question: str, thread_id: str, session: ChatSession,
                streams: StreamChannelSet) -> str:
    """Run one request to a terminal state. Every channel is closed on return."""
    outcome = "error"
    try:
      streams.status.update("conversation.extract_range")
      extracted = await self.extract_range(question, now=self.clock())
      streams.extracted_range.update(extracted.to_payload() if extracted else None)

      config = await self.config_cache.load()
      history: List[Message] = self.store.get(thread_id)
      history.append(UserMessage(content=question))
      try:
        outcome = await self._run_rounds(question, extracted, config, history,
                                         session, streams)
      finally:
        self.store.put(thread_id, _drop_unanswered(history))
      streams.status.update(f"conversation.{outcome}")
    except Exception as exc:
      outcome = "error"
      logger.exception("conversation %s failed", thread_id)
      streams.status.update("conversation.error")
      streams.text.append(f"Error: {str(exc) or GENERIC_ERROR_TEXT}")
    finally:
      streams.close()
    return outcome

  async def _run_rounds(self, question: str,
                        extracted: Optional[ExtractedTimeRange],
                        config: AssistantConfiguration, history: List[Message],
                        session: ChatSession, streams: StreamChannelSet) -> str:
    dispatcher = ToolDispatcher(self.provider_factory(session.access_token),
                                user_email=session.user_email,
                                on_progress=streams.gui.update)
    mutations = 0

    for round_index in range(self.max_rounds):
      streams.status.update(f"conversation.model_round_{round_index + 1}")
      messages = [self._system_message(config, session)]
      messages.extend(message.to_openai() for message in history)
      completion = await self.client.chat.completions.create(
          model=self.model,
          temperature=self.temperature,
          tool_choice="auto",
          tools=list(config.tools),
          messages=messages,
      )
      choices = _get(completion, "choices") or []
      message = _get(choices[0], "message") if choices else None
      _debug_print("assistant_round", self.model, messages, message)

      if message is None:
        streams.text.append(NO_RESPONSE_TEXT)
        return "final"

      requests = requests_from_message(message)
      content = _get(message, "content") or ""
      logger.info("tool-dispatch round=%d tools=%s", round_index + 1,
                  [request.name for request in requests])

      if not requests:
        text = content or NO_RESPONSE_TEXT
        streams.text.append(text)
        history.append(AssistantMessage(content=text))
        return "final"

      if self.gate.should_defer(question, extracted, requests):
        # pending requests are dropped, never recorded
        streams.text.append(self.gate.prompt)
        history.append(AssistantMessage(content=self.gate.prompt))
        return "clarification"

      history.append(AssistantMessage(content=content, tool_calls=requests))
      for request in requests:
        result = await dispatcher.execute(request)
        if result.did_mutate:
          mutations += 1
          streams.mutation_count.update(mutations)
        history.append(ToolResultMessage(tool_call_id=request.id,
                                         name=request.name,
                                         content=result.output,
                                         legacy=request.legacy))

    logger.warning("round budget of %d exhausted without a final answer",
                   self.max_rounds)
    streams.text.append(ROUND_LIMIT_TEXT)
    history.append(AssistantMessage(content=ROUND_LIMIT_TEXT))
    return "round_limit"


_default_orchestrator: Optional[ConversationOrchestrator] = None


def get_orchestrator() -> ConversationOrchestrator:
  global _default_orchestrator
  if _default_orchestrator is None:
    _default_orchestrator = ConversationOrchestrator()
  return _default_orchestrator


async def submit_message(question: str, thread_id: Optional[str],
                         session: Optional[ChatSession]) -> ClientMessage:
  return await get_orchestrator().submit_message(question, thread_id, session)
