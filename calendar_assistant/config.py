from __future__ import annotations

import os
import pathlib
import re

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "").strip() or None
LLM_DEBUG = os.getenv("LLM_DEBUG", "0") == "1"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# -------------------------
# 모델 설정
# -------------------------
ASSISTANT_MODEL = os.getenv("ASSISTANT_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini"
TIME_RANGE_MODEL = os.getenv("TIME_RANGE_MODEL", "").strip() or ASSISTANT_MODEL
ASSISTANT_TEMPERATURE = float(os.getenv("ASSISTANT_TEMPERATURE", "0.2"))
ASSISTANT_TIMEOUT_SECONDS = float(os.getenv("ASSISTANT_TIMEOUT_SECONDS", "60"))
TIME_RANGE_TIMEOUT_SECONDS = float(os.getenv("TIME_RANGE_TIMEOUT_SECONDS", "8"))

# -------------------------
# Assistant 리소스
# -------------------------
BASE_DIR = pathlib.Path(__file__).resolve().parent.parent
ASSISTANT_DIR = pathlib.Path(
    os.getenv("ASSISTANT_DIR", str(BASE_DIR / "assistant")))
ASSISTANT_INSTRUCTION_FILE = "instruction.txt"
ASSISTANT_FUNCTION_FILES = (
    "get_calendar.json",
    "schedule_event.json",
    "edit_event.json",
    "delete_event.json",
)

# -------------------------
# Google Calendar 설정
# -------------------------
GOOGLE_CALENDAR_ID = os.getenv("GOOGLE_CALENDAR_ID", "primary")
GCAL_SCOPES = [
    "openid",
    "email",
    "profile",
    "https://www.googleapis.com/auth/calendar",
]
GOOGLE_TOKEN_DIR = pathlib.Path(
    os.getenv("GOOGLE_TOKEN_DIR", str(BASE_DIR / "gcal_tokens")))
DEFAULT_EVENT_TIMEZONE = os.getenv("DEFAULT_EVENT_TIMEZONE",
                                   "America/Los_Angeles")
SESSION_COOKIE_NAME = "gcal_session"
API_BASE = os.getenv("API_BASE", "/api")

CORS_ALLOW_ORIGINS = os.getenv("CORS_ALLOW_ORIGINS", "")
cors_origins: list[str] = [
    origin.strip() for origin in CORS_ALLOW_ORIGINS.split(",") if origin.strip()
]

# -------------------------
# 런타임 제한/기본값
# -------------------------
MAX_TOOL_ROUNDS = int(os.getenv("MAX_TOOL_ROUNDS", "8"))
MAX_THREAD_MESSAGES = int(os.getenv("MAX_THREAD_MESSAGES", "30"))
MAX_THREADS = int(os.getenv("MAX_THREADS", "1000"))
SSE_PING_SECONDS = 20
