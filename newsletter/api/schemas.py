from __future__ import annotations

from pydantic import BaseModel, Field


ISSUE_ID_PATTERN = r"^iss_[0-9A-HJKMNP-TV-Z]{26}$"
IDEMPOTENCY_KEY_HEADER = "Idempotency-Key"
OWNER_ID_HEADER = "X-Owner-Id"


class ErrorResponse(BaseModel):
    detail: str


class WorkerMetrics(BaseModel):
    started: bool
    stopped: bool
    ticks_total: int
    delivered_total: int
    skipped_total: int
    idle_ticks_total: int
    errors_total: int


class HealthResponse(BaseModel):
    status: str
    role: str


class ReadyResponse(BaseModel):
    status: str
    role: str
    worker_loop_enabled: bool
    worker_loop_ready: bool
    worker_metrics: WorkerMetrics


class NewsletterContent(BaseModel):
    html: str = Field(min_length=1)
    text: str = Field(min_length=1)


class PublishNewsletterRequest(BaseModel):
    title: str = Field(min_length=1, max_length=256)
    content: NewsletterContent


class PublishNewsletterResponse(BaseModel):
    issue_id: str = Field(pattern=ISSUE_ID_PATTERN)
    recipients_enqueued: int = Field(ge=0)


class IssueDeliveryStatusResponse(BaseModel):
    issue_id: str = Field(pattern=ISSUE_ID_PATTERN)
    title: str
    pending_deliveries: int = Field(ge=0)
