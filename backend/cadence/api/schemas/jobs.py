"""Schemas for job operations endpoints."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class JobRunRequest(BaseModel):
    job: Literal["generate", "maintenance"]


class JobRunResponse(BaseModel):
    job: str
    patterns_processed: int = 0
    tasks_generated: int = 0
    cursors_backfilled: int = 0
    patterns_paused: int = 0
    failures: int = 0
    request_id: str
