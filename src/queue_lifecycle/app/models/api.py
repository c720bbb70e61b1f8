from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from queue_lifecycle.engine.lifecycle import BatchSummary, DrainResult


class SendMessageRequest(BaseModel):
    body: str = Field(min_length=1)
    attributes: Dict[str, str] = Field(default_factory=dict)


class SendMessageResponse(BaseModel):
    queue_name: str
    message_id: str


class MessageOutcomeModel(BaseModel):
    message_id: str
    body: str
    status: str
    reason: Optional[str] = None


class BatchSummaryResponse(BaseModel):
    operation: str
    queue_name: str
    dlq_name: Optional[str] = None
    counts: Dict[str, int]
    outcomes: List[MessageOutcomeModel]
    message: str

    @classmethod
    def from_summary(cls, summary: BatchSummary) -> "BatchSummaryResponse":
        return cls(
            operation=summary.operation,
            queue_name=summary.queue_name,
            dlq_name=summary.dlq_name,
            counts=summary.counts(),
            outcomes=[MessageOutcomeModel(**outcome.__dict__) for outcome in summary.outcomes],
            message=summary.describe(),
        )


class DrainResponse(BaseModel):
    queue_name: str
    queue_valid: bool
    messages: List[str] = Field(default_factory=list)
    outcomes: List[MessageOutcomeModel] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: DrainResult) -> "DrainResponse":
        return cls(
            queue_name=result.queue_name,
            queue_valid=result.queue_valid,
            messages=[message.body for message in result.messages],
            outcomes=[MessageOutcomeModel(**outcome.__dict__) for outcome in result.outcomes],
        )
