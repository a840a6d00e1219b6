"""Catalog repository - Database operations for service templates"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import ServiceTemplate


class CatalogRepository:
    """Repository for service template database operations"""

    @staticmethod
    def get_store_services(db: Session) -> list[ServiceTemplate]:
        """Active templates that can be bought from the store"""
        return (
            db.query(ServiceTemplate)
            .filter(
                ServiceTemplate.is_active.is_(True),
                ServiceTemplate.is_purchasable.is_(True),
                ServiceTemplate.price.isnot(None),
            )
            .order_by(ServiceTemplate.name)
            .all()
        )

    @staticmethod
    def get_templates(db: Session, include_inactive: bool = False) -> list[ServiceTemplate]:
        query = db.query(ServiceTemplate)
        if not include_inactive:
            query = query.filter(ServiceTemplate.is_active.is_(True))
        return query.order_by(ServiceTemplate.id).all()

    @staticmethod
    def get_template(db: Session, template_id: int) -> Optional[ServiceTemplate]:
        return db.query(ServiceTemplate).filter(ServiceTemplate.id == template_id).first()

    @staticmethod
    def create_template(db: Session, **data) -> ServiceTemplate:
        template = ServiceTemplate(**data)
        db.add(template)
        db.flush()
        return template

    @staticmethod
    def update_template(db: Session, template: ServiceTemplate, **updates) -> ServiceTemplate:
        for key, value in updates.items():
            setattr(template, key, value)
        db.flush()
        return template
