from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Any, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from queue_lifecycle.app.auth.api_key import ApiKeyAuth
from queue_lifecycle.app.config.loader import resolve_consumer_config
from queue_lifecycle.app.models.api import (
    BatchSummaryResponse,
    DrainResponse,
    SendMessageRequest,
    SendMessageResponse,
)
from queue_lifecycle.engine.lifecycle import MessageLifecycleController
from queue_lifecycle.scripts.worker import build_controller
from queue_lifecycle.util.errors import (
    DlqDispatchError,
    InvalidQueueError,
    QueueNotFoundError,
    TransportError,
)

api_keys = set(filter(None, os.getenv("API_KEYS", "").split(",")))

logger = logging.getLogger("queue_lifecycle.api")

auth_dependency = ApiKeyAuth(api_keys)

app = FastAPI()


@lru_cache(maxsize=1)
def get_controller() -> MessageLifecycleController:
    return build_controller(resolve_consumer_config())


@app.exception_handler(InvalidQueueError)
async def invalid_queue_handler(_request: Request, exc: InvalidQueueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(QueueNotFoundError)
async def queue_not_found_handler(_request: Request, exc: QueueNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(DlqDispatchError)
async def dlq_dispatch_handler(_request: Request, exc: DlqDispatchError) -> JSONResponse:
    logger.error("dlq_dispatch_failed: %s", exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.exception_handler(TransportError)
async def transport_error_handler(_request: Request, exc: TransportError) -> JSONResponse:
    logger.error("queue_transport_failed: %s", exc)
    return JSONResponse(status_code=503, content={"detail": "Queue unavailable"})


@app.get("/v1/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/v1/queues", dependencies=[Depends(auth_dependency)])
def list_queues(controller: MessageLifecycleController = Depends(get_controller)) -> dict[str, list[str]]:
    return {"queues": controller.list_queues()}


@app.post("/v1/queues/{queue_name}/messages", dependencies=[Depends(auth_dependency)])
def send_message(
    queue_name: str,
    request: SendMessageRequest,
    controller: MessageLifecycleController = Depends(get_controller),
) -> SendMessageResponse:
    message_id = controller.send_message(queue_name, request.body, request.attributes or None)
    return SendMessageResponse(queue_name=queue_name, message_id=message_id)


@app.get("/v1/queues/{queue_name}/count", dependencies=[Depends(auth_dependency)])
def message_count(
    queue_name: str,
    controller: MessageLifecycleController = Depends(get_controller),
) -> dict[str, Any]:
    return {"queue_name": queue_name, "count": controller.get_message_count(queue_name)}


@app.post("/v1/queues/{queue_name}/drain", dependencies=[Depends(auth_dependency)])
def drain(
    queue_name: str,
    batch_size: Optional[int] = Query(default=None, ge=1, le=10),
    visibility_timeout_seconds: Optional[int] = Query(default=None, ge=0, le=43200),
    controller: MessageLifecycleController = Depends(get_controller),
) -> DrainResponse:
    result = controller.receive_once(queue_name, batch_size, visibility_timeout_seconds)
    return DrainResponse.from_result(result)


@app.post("/v1/queues/{queue_name}/mark-read", dependencies=[Depends(auth_dependency)])
def mark_as_read(
    queue_name: str,
    controller: MessageLifecycleController = Depends(get_controller),
) -> BatchSummaryResponse:
    return BatchSummaryResponse.from_summary(controller.mark_as_read(queue_name))


@app.post("/v1/queues/{queue_name}/retry", dependencies=[Depends(auth_dependency)])
def retry_and_redirect(
    queue_name: str,
    dlq_name: str = Query(..., min_length=1),
    controller: MessageLifecycleController = Depends(get_controller),
) -> BatchSummaryResponse:
    return BatchSummaryResponse.from_summary(controller.retry_and_redirect(queue_name, dlq_name))


@app.post("/v1/queues/{queue_name}/process", dependencies=[Depends(auth_dependency)])
def process_and_handle_failures(
    queue_name: str,
    dlq_name: str = Query(..., min_length=1),
    controller: MessageLifecycleController = Depends(get_controller),
) -> BatchSummaryResponse:
    return BatchSummaryResponse.from_summary(controller.process_and_handle_failures(queue_name, dlq_name))
