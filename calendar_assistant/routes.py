from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from googleapiclient.errors import HttpError

from .agent.orchestrator import NOT_AUTHENTICATED_TEXT, get_orchestrator
from .agent.schemas import ChatRequest
from .agent.streams import CHANNEL_NAMES
from .config import API_BASE, GOOGLE_CALENDAR_ID, SSE_PING_SECONDS
from .gcal import describe_http_error, normalize_event
from .session import get_chat_session
from .utils import parse_timestamp, to_utc_iso

router = APIRouter()
logger = logging.getLogger(__name__)


def _format_sse_event(event_type: str, payload: Dict[str, Any]) -> str:
  body = json.dumps(payload, ensure_ascii=False, default=str)
  return f"event: {event_type}\ndata: {body}\n\n"


@router.post(f"{API_BASE}/chat")
async def chat(body: ChatRequest, request: Request):
  session = await asyncio.to_thread(get_chat_session, request)
  orchestrator = get_orchestrator()
  message = await orchestrator.submit_message(body.question, body.thread_id,
                                              session)
  if message.streams is None:
    return JSONResponse(status_code=401,
                        content={
                            "id": message.id,
                            "status": "",
                            "text": NOT_AUTHENTICATED_TEXT,
                            "gui": None,
                        })

  streams = message.streams
  queue = streams.subscribe()

  async def event_generator():
    completed = set()
    try:
      yield _format_sse_event("ready", {"id": message.id})
      while len(completed) < len(CHANNEL_NAMES):
        if await request.is_disconnected():
          break
        try:
          event = await asyncio.wait_for(queue.get(), timeout=SSE_PING_SECONDS)
        except asyncio.TimeoutError:
          yield _format_sse_event("ping", {})
          continue
        if event["op"] == "done":
          completed.add(event["channel"])
        yield _format_sse_event(event["channel"], {
            "op": event["op"],
            "value": event["value"],
        })
      yield _format_sse_event("done", {"id": message.id})
    finally:
      # the conversation keeps running detached; only this reader goes away
      streams.unsubscribe(queue)

  return StreamingResponse(
      event_generator(),
      media_type="text/event-stream",
      headers={
          "Cache-Control": "no-cache",
          "Connection": "keep-alive",
          "X-Accel-Buffering": "no",
      },
  )


@router.get(f"{API_BASE}/chat/threads/{{thread_id}}")
def chat_thread(thread_id: str):
  store = get_orchestrator().store
  if thread_id not in store:
    raise HTTPException(status_code=404, detail="Thread not found.")
  return {
      "thread_id": thread_id,
      "messages": [message.model_dump() for message in store.get(thread_id)],
  }


@router.get(f"{API_BASE}/calendar/events")
async def calendar_events(request: Request,
                          start: str = Query(...),
                          end: str = Query(...),
                          calendar_id: str = Query(GOOGLE_CALENDAR_ID)):
  session = await asyncio.to_thread(get_chat_session, request)
  if session is None or not session.access_token:
    raise HTTPException(status_code=401, detail=NOT_AUTHENTICATED_TEXT)

  start_dt = parse_timestamp(start)
  end_dt = parse_timestamp(end)
  if start_dt is None or end_dt is None or end_dt <= start_dt:
    raise HTTPException(status_code=400, detail="Invalid start/end range.")

  provider = get_orchestrator().provider_factory(session.access_token)
  try:
    items = await asyncio.to_thread(provider.list_events, calendar_id,
                                    to_utc_iso(start_dt), to_utc_iso(end_dt))
  except HttpError as exc:
    detail = describe_http_error(exc)
    logger.warning("calendar events fetch failed: %s", detail)
    raise HTTPException(status_code=502, detail=detail) from exc
  return {"events": [normalize_event(item) for item in items if isinstance(item, dict)]}
