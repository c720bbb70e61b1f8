from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field


class ReceiveProfile(BaseModel):
    batch_size: int = Field(ge=1, le=10)
    visibility_timeout_seconds: Optional[int] = Field(default=None, ge=0, le=43200)
    wait_time_seconds: Optional[int] = Field(default=None, ge=0, le=20)
    extension_seconds: int = Field(default=30, ge=0, le=43200)


def _drain_profile() -> ReceiveProfile:
    return ReceiveProfile(batch_size=5, visibility_timeout_seconds=60, extension_seconds=30)


def _poll_profile() -> ReceiveProfile:
    return ReceiveProfile(batch_size=10, wait_time_seconds=20, extension_seconds=30)


def _batch_profile() -> ReceiveProfile:
    return ReceiveProfile(batch_size=2, visibility_timeout_seconds=30, wait_time_seconds=20)


class ConsumerConfig(BaseModel):
    schema_version: int = 1
    region: Optional[str] = None
    endpoint_url: Optional[str] = None
    drain: ReceiveProfile = Field(default_factory=_drain_profile)
    poll: ReceiveProfile = Field(default_factory=_poll_profile)
    batch: ReceiveProfile = Field(default_factory=_batch_profile)
    failure_visibility_seconds: int = Field(default=60, ge=0, le=43200)
    poll_error_backoff_seconds: float = Field(default=5.0, ge=0)

    @classmethod
    def from_env(cls) -> "ConsumerConfig":
        return cls(
            region=os.getenv("QUEUE_REGION") or None,
            endpoint_url=os.getenv("QUEUE_ENDPOINT_URL") or None,
            poll_error_backoff_seconds=float(os.getenv("WORKER_ERROR_BACKOFF_SECONDS", "5")),
        )
