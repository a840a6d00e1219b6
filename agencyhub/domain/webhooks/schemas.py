"""Webhook domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.enums import WebhookEvent
from ...shared.validators import validate_webhook_headers, validate_webhook_url

KNOWN_EVENTS = {event.value for event in WebhookEvent}


def _validate_events(events: Optional[list[str]]) -> Optional[list[str]]:
    if events is None:
        return None
    unknown = sorted(set(events) - KNOWN_EVENTS)
    if unknown:
        raise ValueError(f"Unknown webhook events: {', '.join(unknown)}")
    return sorted(set(events))


class WebhookCreate(BaseModel):
    """Schema for registering a webhook endpoint"""

    name: str = Field(min_length=1, max_length=255)
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    events: list[str] = Field(default_factory=list)
    isActive: bool = True

    @field_validator("url")
    @classmethod
    def validate_url(cls, v):
        return validate_webhook_url(v)

    @field_validator("headers")
    @classmethod
    def validate_headers(cls, v):
        return validate_webhook_headers(v)

    @field_validator("events")
    @classmethod
    def validate_events(cls, v):
        return _validate_events(v)


class WebhookUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    url: Optional[str] = None
    headers: Optional[dict[str, str]] = None
    events: Optional[list[str]] = None
    isActive: Optional[bool] = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v):
        return validate_webhook_url(v) if v is not None else v

    @field_validator("headers")
    @classmethod
    def validate_headers(cls, v):
        return validate_webhook_headers(v) if v is not None else v

    @field_validator("events")
    @classmethod
    def validate_events(cls, v):
        return _validate_events(v)


class WebhookExecuteRequest(BaseModel):
    """Arbitrary JSON body to POST to the webhook once"""

    payload: dict[str, Any] = Field(default_factory=dict)


class WebhookResponse(BaseModel):
    id: int
    name: str
    url: str
    headers: dict[str, str]
    events: list[str]
    isActive: bool
    createdAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, webhook) -> "WebhookResponse":
        return cls(
            id=webhook.id,
            name=webhook.name,
            url=webhook.url,
            headers=webhook.headers or {},
            events=webhook.events or [],
            isActive=webhook.is_active,
            createdAt=webhook.created_at,
        )


class WebhookExecutionResponse(BaseModel):
    id: int
    webhookId: int
    event: Optional[str] = None
    payload: Optional[Any] = None
    response: Optional[Any] = None
    statusCode: Optional[int] = None
    error: Optional[str] = None
    success: bool
    createdAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, execution) -> "WebhookExecutionResponse":
        return cls(
            id=execution.id,
            webhookId=execution.webhook_id,
            event=execution.event,
            payload=execution.payload,
            response=execution.response,
            statusCode=execution.status_code,
            error=execution.error,
            success=execution.succeeded,
            createdAt=execution.created_at,
        )
