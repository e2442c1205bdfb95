from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from calendar_assistant.config import LOG_LEVEL, cors_origins
from calendar_assistant.routes import router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

app = FastAPI(title="Calendar Assistant")

if cors_origins:
  app.add_middleware(
      CORSMiddleware,
      allow_origins=cors_origins,
      allow_credentials=True,
      allow_methods=["*"],
      allow_headers=["*"],
  )

app.include_router(router)


@app.get("/healthz")
def healthz():
  return {"ok": True}
