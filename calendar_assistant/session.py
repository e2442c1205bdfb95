from __future__ import annotations

import hashlib
import json
import logging
import pathlib
from typing import Any, Dict, Optional

import requests
from fastapi import Request
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleRequest
from google.oauth2.credentials import Credentials

from .agent.schemas import ChatSession
from .config import GCAL_SCOPES, GOOGLE_TOKEN_DIR, SESSION_COOKIE_NAME

logger = logging.getLogger(__name__)

USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


def _normalize_session_id(raw: Optional[str]) -> Optional[str]:
  if not isinstance(raw, str):
    return None
  value = raw.strip()
  if not value:
    return None
  if len(value) > 512:
    return None
  return value


def _session_key(session_id: str) -> str:
  return hashlib.sha256(session_id.encode("utf-8")).hexdigest()


def _session_token_path(session_id: str) -> pathlib.Path:
  return GOOGLE_TOKEN_DIR / f"token_{_session_key(session_id)}.json"


def _get_session_id(request: Request) -> Optional[str]:
  return _normalize_session_id(request.cookies.get(SESSION_COOKIE_NAME))


def _bearer_token(request: Request) -> Optional[str]:
  header = request.headers.get("authorization") or ""
  scheme, _, token = header.partition(" ")
  if scheme.lower() != "bearer" or not token.strip():
    return None
  return token.strip()


def load_token_for_session(session_id: Optional[str]) -> Optional[Dict[str, Any]]:
  if not session_id:
    return None
  path = _session_token_path(session_id)
  if not path.exists():
    return None
  try:
    with path.open("r", encoding="utf-8") as f:
      data = json.load(f)
  except (OSError, ValueError) as exc:
    logger.warning("unreadable token file for session: %r", exc)
    return None
  return data if isinstance(data, dict) else None


def save_token_for_session(session_id: str, data: Dict[str, Any]) -> None:
  if not session_id:
    return
  GOOGLE_TOKEN_DIR.mkdir(parents=True, exist_ok=True)
  path = _session_token_path(session_id)
  path.write_text(json.dumps(data, ensure_ascii=False, indent=2),
                  encoding="utf-8")


def _access_token_from_stored(session_id: str,
                              token_data: Dict[str, Any]) -> Optional[str]:
  if not token_data.get("refresh_token"):
    token = token_data.get("token") or token_data.get("access_token")
    return token if isinstance(token, str) and token else None
  try:
    creds = Credentials.from_authorized_user_info(token_data, GCAL_SCOPES)
    if creds.expired and creds.refresh_token:
      creds.refresh(GoogleRequest())
      refreshed = json.loads(creds.to_json())
      for key in ("name", "email"):
        if key in token_data:
          refreshed[key] = token_data[key]
      save_token_for_session(session_id, refreshed)
  except (ValueError, GoogleAuthError) as exc:
    logger.warning("stored Google credentials are unusable: %r", exc)
    return None
  return creds.token


def fetch_userinfo(access_token: str) -> Dict[str, Any]:
  try:
    response = requests.get(
        USERINFO_URL,
        headers={"Authorization": f"Bearer {access_token}"},
        timeout=5,
    )
  except requests.RequestException as exc:
    logger.debug("userinfo request failed: %r", exc)
    return {}
  if not response.ok:
    return {}
  try:
    payload = response.json()
  except ValueError:
    return {}
  return payload if isinstance(payload, dict) else {}


def get_chat_session(request: Request) -> Optional[ChatSession]:
  """Resolve the caller's Google access token; None means unauthenticated.

  Blocking (token refresh, userinfo lookup): call it off the event loop.
  The email comes from Google, either the stored token payload or userinfo.
  `X-User-Email` is only a fallback for bearer callers behind a trusted proxy
  when userinfo is unavailable.
  """
  header_name = request.headers.get("x-user-name")
  header_email = request.headers.get("x-user-email")

  access_token = _bearer_token(request)
  if access_token is not None:
    info = fetch_userinfo(access_token)
    return ChatSession(access_token=access_token,
                       user_name=info.get("name") or header_name,
                       user_email=info.get("email") or header_email)

  session_id = _get_session_id(request)
  token_data = load_token_for_session(session_id)
  if not token_data or session_id is None:
    return None
  access_token = _access_token_from_stored(session_id, token_data)
  if not access_token:
    return None

  user_name = token_data.get("name") or header_name
  user_email = token_data.get("email")
  if not user_email:
    info = fetch_userinfo(access_token)
    user_name = user_name or info.get("name")
    user_email = info.get("email")
  return ChatSession(access_token=access_token,
                     user_name=user_name,
                     user_email=user_email)
