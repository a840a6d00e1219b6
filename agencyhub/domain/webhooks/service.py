"""Webhook service - registration and single-attempt delivery with execution logging"""

import json
import logging
from typing import Any, Optional

import httpx
from sqlalchemy.orm import Session

from ...config import WEBHOOK_TIMEOUT_SECONDS
from ...database import transaction
from ...errors import NotFoundError
from ...models import Webhook, WebhookExecution
from ...shared.clock import utcnow
from .repository import WebhookRepository
from .schemas import WebhookCreate, WebhookUpdate

logger = logging.getLogger(__name__)


def parse_response_body(response: httpx.Response) -> Any:
    """Keep JSON responses as-is, wrap anything else as {"text": ...}"""
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {"text": response.text}


def build_event_envelope(event: str, data: dict) -> dict:
    return {"event": event, "data": data, "sentAt": utcnow().isoformat()}


class WebhookService:
    """Service layer for webhook business logic"""

    def __init__(self, db: Session, http_client: Optional[httpx.AsyncClient] = None):
        self.db = db
        self.repo = WebhookRepository()
        self.http_client = http_client

    def list_webhooks(self) -> list[Webhook]:
        return self.repo.list_webhooks(self.db)

    def get_webhook(self, webhook_id: int) -> Webhook:
        webhook = self.repo.get_webhook(self.db, webhook_id)
        if not webhook:
            raise NotFoundError("Webhook not found")
        return webhook

    def create_webhook(self, data: WebhookCreate) -> Webhook:
        with transaction(self.db, "webhook creation"):
            webhook = self.repo.create_webhook(
                self.db,
                name=data.name,
                url=data.url,
                headers=data.headers,
                events=data.events,
                is_active=data.isActive,
            )
        logger.info(f"✅ Webhook {webhook.id} registered for {webhook.events}")
        return webhook

    def update_webhook(self, webhook_id: int, data: WebhookUpdate) -> Webhook:
        with transaction(self.db, f"webhook {webhook_id} update"):
            webhook = self.get_webhook(webhook_id)
            self.repo.update_webhook(
                self.db,
                webhook,
                name=data.name,
                url=data.url,
                headers=data.headers,
                events=data.events,
                is_active=data.isActive,
            )
        return webhook

    def delete_webhook(self, webhook_id: int) -> None:
        with transaction(self.db, f"webhook {webhook_id} deletion"):
            self.repo.delete_webhook(self.db, self.get_webhook(webhook_id))
        logger.info(f"🗑️ Webhook {webhook_id} deleted")

    def list_executions(self, webhook_id: int, limit: int = 50) -> list[WebhookExecution]:
        self.get_webhook(webhook_id)
        return self.repo.list_executions(self.db, webhook_id, limit)

    async def _post(self, url: str, body: dict, headers: dict) -> httpx.Response:
        if self.http_client is not None:
            return await self.http_client.post(url, json=body, headers=headers)
        async with httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT_SECONDS) as client:
            return await client.post(url, json=body, headers=headers)

    async def deliver(self, webhook: Webhook, body: dict, event: Optional[str] = None) -> WebhookExecution:
        """
        POST `body` to the webhook exactly once and record the outcome.

        Delivery problems are recorded on the execution, never raised; only a
        failure to store the execution itself propagates.
        """
        headers = {**(webhook.headers or {}), "Content-Type": "application/json"}
        execution = WebhookExecution(webhook_id=webhook.id, event=event, payload=body)

        try:
            response = await self._post(webhook.url, body, headers)
            execution.status_code = response.status_code
            execution.response = parse_response_body(response)
            if response.is_error:
                execution.error = f"HTTP {response.status_code}"
                logger.warning(f"⚠️ Webhook {webhook.id} responded {response.status_code} for {event or 'manual'}")
            else:
                logger.info(f"✅ Webhook {webhook.id} delivered ({response.status_code}) for {event or 'manual'}")
        except httpx.HTTPError as e:
            execution.error = str(e) or type(e).__name__
            logger.error(f"❌ Webhook {webhook.id} delivery failed: {execution.error}")

        with transaction(self.db, f"webhook {webhook.id} execution log"):
            self.repo.add_execution(self.db, execution)
        return execution

    async def execute_webhook(self, webhook_id: int, payload: dict) -> WebhookExecution:
        """Manual one-off delivery of an arbitrary payload"""
        webhook = self.get_webhook(webhook_id)
        return await self.deliver(webhook, payload)

    async def dispatch_event(self, event: str, data: dict) -> list[WebhookExecution]:
        """Deliver an event envelope to every active webhook subscribed to it"""
        targets = [w for w in self.repo.list_webhooks(self.db, active_only=True) if w.subscribes_to(event)]
        if not targets:
            logger.debug(f"No webhooks subscribed to {event}")
            return []

        body = build_event_envelope(event, data)
        executions = []
        for webhook in targets:
            executions.append(await self.deliver(webhook, body, event=event))
        return executions
