"""Webhook repository - Database operations for webhooks and their executions"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Webhook, WebhookExecution


class WebhookRepository:
    """Repository for webhook database operations"""

    @staticmethod
    def list_webhooks(db: Session, active_only: bool = False) -> list[Webhook]:
        query = db.query(Webhook)
        if active_only:
            query = query.filter(Webhook.is_active.is_(True))
        return query.order_by(Webhook.id.asc()).all()

    @staticmethod
    def get_webhook(db: Session, webhook_id: int) -> Optional[Webhook]:
        return db.query(Webhook).filter(Webhook.id == webhook_id).first()

    @staticmethod
    def create_webhook(db: Session, **webhook_data) -> Webhook:
        webhook = Webhook(**webhook_data)
        db.add(webhook)
        db.flush()
        return webhook

    @staticmethod
    def update_webhook(db: Session, webhook: Webhook, **updates) -> Webhook:
        for key, value in updates.items():
            if value is not None and hasattr(webhook, key):
                setattr(webhook, key, value)
        db.flush()
        return webhook

    @staticmethod
    def delete_webhook(db: Session, webhook: Webhook) -> None:
        db.delete(webhook)
        db.flush()

    @staticmethod
    def add_execution(db: Session, execution: WebhookExecution) -> WebhookExecution:
        db.add(execution)
        db.flush()
        return execution

    @staticmethod
    def list_executions(db: Session, webhook_id: int, limit: int = 50) -> list[WebhookExecution]:
        return (
            db.query(WebhookExecution)
            .filter(WebhookExecution.webhook_id == webhook_id)
            .order_by(WebhookExecution.id.desc())
            .limit(limit)
            .all()
        )
