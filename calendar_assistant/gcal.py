from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .config import GOOGLE_CALENDAR_ID

logger = logging.getLogger(__name__)


class GoogleCalendarProvider:
  """Blocking wrapper over the Calendar v3 events API for one access token."""

  def __init__(self, access_token: Optional[str] = None, service: Any = None) -> None:
    if service is None and not access_token:
      raise ValueError("access_token or service is required")
    self._access_token = access_token
    self._service = service

  @property
  def service(self):
    if self._service is None:
      creds = Credentials(token=self._access_token)
      self._service = build("calendar", "v3", credentials=creds,
                            cache_discovery=False)
    return self._service

  def list_events(self, calendar_id: Optional[str], time_min: str,
                  time_max: str) -> List[Dict[str, Any]]:
    items: List[Dict[str, Any]] = []
    page_token: Optional[str] = None
    while True:
      response = self.service.events().list(
          calendarId=calendar_id or GOOGLE_CALENDAR_ID,
          timeMin=time_min,
          timeMax=time_max,
          singleEvents=True,
          orderBy="startTime",
          pageToken=page_token,
      ).execute()
      page = response.get("items", [])
      if isinstance(page, list):
        items.extend(page)
      page_token = response.get("nextPageToken")
      if not page_token:
        break
    return items

  def insert_event(self, calendar_id: Optional[str],
                   body: Dict[str, Any]) -> Dict[str, Any]:
    return self.service.events().insert(calendarId=calendar_id or GOOGLE_CALENDAR_ID,
                                        body=body).execute()

  def update_event(self, calendar_id: Optional[str], event_id: str,
                   body: Dict[str, Any]) -> Dict[str, Any]:
    # patch leaves fields absent from body untouched
    return self.service.events().patch(calendarId=calendar_id or GOOGLE_CALENDAR_ID,
                                       eventId=event_id,
                                       body=body).execute()

  def delete_event(self, calendar_id: Optional[str], event_id: str) -> None:
    self.service.events().delete(calendarId=calendar_id or GOOGLE_CALENDAR_ID,
                                 eventId=event_id).execute()

  def get_calendar_timezone(self, calendar_id: str = "primary") -> Optional[str]:
    calendar = self.service.calendars().get(calendarId=calendar_id).execute()
    tz_value = calendar.get("timeZone") if isinstance(calendar, dict) else None
    if isinstance(tz_value, str) and tz_value.strip():
      return tz_value.strip()
    return None


def normalize_event(raw: Dict[str, Any]) -> Dict[str, Any]:
  start_raw = raw.get("start") or {}
  end_raw = raw.get("end") or {}
  attendees: List[str] = []
  for item in raw.get("attendees") or []:
    if isinstance(item, dict) and isinstance(item.get("email"), str):
      attendees.append(item["email"])

  video_link = ""
  entry_points = (raw.get("conferenceData") or {}).get("entryPoints")
  if isinstance(entry_points, list):
    for entry in entry_points:
      if isinstance(entry, dict) and entry.get("entryPointType") == "video":
        video_link = entry.get("uri") or ""
        break

  return {
      "id": raw.get("id"),
      "title": raw.get("summary") or "Busy",
      "start": start_raw.get("dateTime") or start_raw.get("date"),
      "end": end_raw.get("dateTime") or end_raw.get("date"),
      "allDay": not start_raw.get("dateTime"),
      "extendedProps": {
          "description": raw.get("description") or "",
          "attendees": attendees,
          "recurrence": raw.get("recurrence") or [],
          "hangoutLink": raw.get("hangoutLink") or "",
          "videoConferenceLink": video_link,
          "responseStatus": raw.get("status"),
      },
  }


def describe_http_error(exc: HttpError) -> str:
  status = getattr(exc.resp, "status", None)
  content = getattr(exc, "content", None)
  if isinstance(content, (bytes, bytearray)):
    content = content.decode("utf-8", errors="ignore")

  message = ""
  code = None
  reasons: List[str] = []
  try:
    payload = json.loads(content or "")
  except ValueError:
    payload = None
  error = payload.get("error") if isinstance(payload, dict) else None
  if isinstance(error, dict):
    message = str(error.get("message") or "")
    code = error.get("status") or error.get("code")
    for item in error.get("errors") or []:
      if isinstance(item, dict) and item.get("reason"):
        reasons.append(str(item["reason"]))
  if not message:
    message = str(getattr(exc, "reason", "") or "") or "Request failed"

  parts = [f"Google Calendar error (status {status}"]
  if code is not None:
    parts.append(f", code {code}")
  parts.append(f"): {message}")
  if reasons:
    parts.append(f" [reasons: {', '.join(reasons)}]")
  return "".join(parts)
