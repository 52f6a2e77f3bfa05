from __future__ import annotations

from pydantic import BaseModel, Field


class Health(BaseModel):
    ok: bool
    service: str
    version: str


class Stats(BaseModel):
    count: int = Field(..., ge=0, description="Entries currently stored")
    total_size: int = Field(..., ge=0, description="Bytes currently stored")
    max_buckets: int
    max_storage_bytes: int
