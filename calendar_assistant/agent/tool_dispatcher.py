from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from googleapiclient.errors import HttpError

from ..config import DEFAULT_EVENT_TIMEZONE, GOOGLE_CALENDAR_ID
from ..gcal import GoogleCalendarProvider, describe_http_error, normalize_event
from ..utils import date_part, is_present, parse_timestamp, to_utc_iso
from .args_codec import dump_tool_output
from .schemas import ToolCallRequest, ToolExecutionResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Dict[str, Any]], None]
Handler = Callable[[Dict[str, Any]], Awaitable[Tuple[Any, bool]]]

_ACTION_LABELS: Dict[str, Tuple[str, str]] = {
    "get_calendar": ("Consulting events", "Consulted events"),
    "schedule_event": ("Scheduling events", "Scheduled events"),
    "edit_event": ("Editing events", "Edited events"),
    "delete_event": ("Deleting events", "Deleted events"),
}


class ToolArgumentError(ValueError):
  pass


def describe_tool_error(exc: Exception) -> str:
  if isinstance(exc, HttpError):
    return describe_http_error(exc)
  message = str(exc).strip()
  return message or f"{type(exc).__name__}: Tool execution failed"


def _require_timestamp(args: Dict[str, Any], key: str) -> datetime:
  value = parse_timestamp(args.get(key))
  if value is None:
    raise ToolArgumentError(f"'{key}' must be an ISO8601 timestamp")
  return value


def _require_event_id(args: Dict[str, Any]) -> str:
  event_id = args.get("event_id")
  if not is_present(event_id):
    raise ToolArgumentError("'event_id' is required")
  return str(event_id).strip()


def _valid_timezone(value: Any) -> Optional[str]:
  if not isinstance(value, str) or not value.strip():
    return None
  try:
    ZoneInfo(value.strip())
  except Exception:
    return None
  return value.strip()


def _all_day_bounds(start_raw: Any, end_raw: Any) -> Tuple[str, str]:
  start_date = date_part(str(start_raw))
  last_date = date_part(str(end_raw)) if end_raw else start_date
  # end_time names the last day; Google wants the day after it
  last_date = max(last_date, start_date)
  end_date = (date.fromisoformat(last_date) + timedelta(days=1)).isoformat()
  return start_date, end_date


def _email_list(value: Any) -> List[str]:
  if not isinstance(value, list):
    return []
  return [item.strip() for item in value if isinstance(item, str) and item.strip()]


class ToolDispatcher:
  """Runs one named calendar tool call and normalizes its outcome.

  Failures never escape `execute`; they come back as non-mutating error
  results so the model can react to them in its next round.
  """

  def __init__(self,
               provider: GoogleCalendarProvider,
               user_email: Optional[str] = None,
               on_progress: Optional[ProgressCallback] = None,
               default_timezone: str = DEFAULT_EVENT_TIMEZONE) -> None:
    self._provider = provider
    self._user_email = user_email
    self._on_progress = on_progress
    self._default_timezone = default_timezone
    self._handlers: Dict[str, Handler] = {
        "get_calendar": self._get_calendar,
        "schedule_event": self._schedule_event,
        "edit_event": self._edit_event,
        "delete_event": self._delete_event,
    }

  @property
  def tool_names(self) -> List[str]:
    return list(self._handlers)

  def _emit(self, tool: str, state: str, label: str) -> None:
    if not callable(self._on_progress):
      return
    self._on_progress({"tool": tool, "state": state, "label": label})

  async def execute(self, request: ToolCallRequest) -> ToolExecutionResult:
    name = request.name
    running_label, done_label = _ACTION_LABELS.get(
        name, ("Processing events", "Processed events"))
    self._emit(name, "running", running_label)

    handler = self._handlers.get(name)
    if handler is None:
      message = f"Unsupported tool: {name}"
      self._emit(name, "error", message)
      return ToolExecutionResult(output=dump_tool_output({"error": message}))

    try:
      data, did_mutate = await handler(request.args)
    except Exception as exc:
      message = describe_tool_error(exc)
      logger.warning("tool %s (%s) failed: %s", name, request.id, message)
      self._emit(name, "error", "Error on taking this action")
      return ToolExecutionResult(output=dump_tool_output({"error": message}))

    self._emit(name, "done", done_label)
    return ToolExecutionResult(output=dump_tool_output({"data": data}),
                               did_mutate=did_mutate)

  async def _resolve_timezone(self, requested: Any) -> str:
    explicit = _valid_timezone(requested)
    if explicit:
      return explicit
    try:
      primary_tz = await asyncio.to_thread(self._provider.get_calendar_timezone,
                                           "primary")
    except Exception as exc:
      logger.debug("primary calendar timezone lookup failed: %r", exc)
      primary_tz = None
    return _valid_timezone(primary_tz) or self._default_timezone

  def _time_fields(self, args: Dict[str, Any],
                   timezone_value: Optional[str]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    if args.get("all_day"):
      start_date, end_date = _all_day_bounds(args.get("start_time"),
                                             args.get("end_time"))
      return {"date": start_date}, {"date": end_date}
    start = _require_timestamp(args, "start_time")
    end = _require_timestamp(args, "end_time")
    start_field: Dict[str, Any] = {"dateTime": to_utc_iso(start)}
    end_field: Dict[str, Any] = {"dateTime": to_utc_iso(end)}
    if timezone_value:
      start_field["timeZone"] = timezone_value
      end_field["timeZone"] = timezone_value
    return start_field, end_field

  async def _get_calendar(self, args: Dict[str, Any]) -> Tuple[Any, bool]:
    start = _require_timestamp(args, "start_time")
    end = _require_timestamp(args, "end_time")
    items = await asyncio.to_thread(self._provider.list_events,
                                    args.get("calendar_id") or GOOGLE_CALENDAR_ID,
                                    to_utc_iso(start), to_utc_iso(end))
    return [normalize_event(item) for item in items if isinstance(item, dict)], False

  async def _schedule_event(self, args: Dict[str, Any]) -> Tuple[Any, bool]:
    if not args.get("all_day"):
      _require_timestamp(args, "start_time")
      _require_timestamp(args, "end_time")
    elif not is_present(args.get("start_time")):
      raise ToolArgumentError("'start_time' is required")
    timezone_value = await self._resolve_timezone(args.get("time_zone"))
    start_field, end_field = self._time_fields(args, timezone_value)
    body: Dict[str, Any] = {
        "summary": args.get("summary"),
        "start": start_field,
        "end": end_field,
    }
    if is_present(args.get("description")):
      body["description"] = args["description"]
    if is_present(args.get("location")):
      body["location"] = args["location"]

    attendees = _email_list(args.get("attendees"))
    if attendees:
      if self._user_email and self._user_email not in attendees:
        attendees.append(self._user_email)
      body["attendees"] = [{"email": email} for email in attendees]
    recurrence = args.get("recurrence")
    if isinstance(recurrence, list) and recurrence:
      body["recurrence"] = recurrence

    created = await asyncio.to_thread(self._provider.insert_event,
                                      GOOGLE_CALENDAR_ID, body)
    return created, True

  async def _edit_event(self, args: Dict[str, Any]) -> Tuple[Any, bool]:
    event_id = _require_event_id(args)
    body: Dict[str, Any] = {}
    for key in ("summary", "description", "location"):
      if args.get(key) is not None:
        body[key] = args[key]

    timezone_value = _valid_timezone(args.get("time_zone"))
    if args.get("all_day") and is_present(args.get("start_time")):
      start_date, end_date = _all_day_bounds(args.get("start_time"),
                                             args.get("end_time"))
      body["start"] = {"date": start_date}
      body["end"] = {"date": end_date}
    else:
      for key, field in (("start_time", "start"), ("end_time", "end")):
        if not is_present(args.get(key)):
          continue
        value: Dict[str, Any] = {"dateTime": to_utc_iso(_require_timestamp(args, key))}
        if timezone_value:
          value["timeZone"] = timezone_value
        body[field] = value

    if isinstance(args.get("attendees"), list):
      body["attendees"] = [{"email": email} for email in _email_list(args["attendees"])]
    if isinstance(args.get("recurrence"), list):
      body["recurrence"] = args["recurrence"]

    updated = await asyncio.to_thread(self._provider.update_event,
                                      GOOGLE_CALENDAR_ID, event_id, body)
    return updated, True

  async def _delete_event(self, args: Dict[str, Any]) -> Tuple[Any, bool]:
    event_id = _require_event_id(args)
    await asyncio.to_thread(self._provider.delete_event, GOOGLE_CALENDAR_ID,
                            event_id)
    return {"id": event_id, "deleted": True}, True
