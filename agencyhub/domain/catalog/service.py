"""Catalog service - service templates offered in the store"""

import logging

from sqlalchemy.orm import Session

from ...config import DEFAULT_CURRENCY
from ...database import transaction
from ...errors import NotFoundError, ValidationError
from ...models import ServiceTemplate
from .repository import CatalogRepository
from .schemas import ServiceTemplateCreate, ServiceTemplateUpdate

logger = logging.getLogger(__name__)

# Request field -> model column
FIELD_MAP = {
    "name": "name",
    "description": "description",
    "price": "price",
    "currency": "currency",
    "isPurchasable": "is_purchasable",
    "isActive": "is_active",
    "requiresContract": "requires_contract",
    "contractTemplate": "contract_template",
    "maxQuantity": "max_quantity",
}
# Fields that may be cleared explicitly with null
NULLABLE_FIELDS = {"description", "price", "contractTemplate"}


class CatalogService:
    """Service layer for the service catalog"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CatalogRepository()

    def get_store_services(self) -> list[ServiceTemplate]:
        return self.repo.get_store_services(self.db)

    def get_templates(self, include_inactive: bool = False) -> list[ServiceTemplate]:
        return self.repo.get_templates(self.db, include_inactive)

    def get_template(self, template_id: int) -> ServiceTemplate:
        template = self.repo.get_template(self.db, template_id)
        if not template:
            raise NotFoundError("Service template not found")
        return template

    def create_template(self, data: ServiceTemplateCreate) -> ServiceTemplate:
        values = {
            FIELD_MAP[field]: value for field, value in data.model_dump(exclude_none=True).items()
        }
        values.setdefault("currency", DEFAULT_CURRENCY)
        with transaction(self.db, "service template creation"):
            template = self.repo.create_template(self.db, **values)
        logger.info(f"✅ Service template created: {template.id} ({template.name})")
        return template

    def update_template(self, template_id: int, data: ServiceTemplateUpdate) -> ServiceTemplate:
        """
        Update a template. Orders keep their own name and price snapshots,
        so edits only affect future purchases.
        """
        template = self.get_template(template_id)
        updates = {
            FIELD_MAP[field]: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field in NULLABLE_FIELDS
        }

        requires_contract = updates.get("requires_contract", template.requires_contract)
        contract_text = updates.get("contract_template", template.contract_template)
        if requires_contract and not contract_text:
            raise ValidationError(
                "Invalid service template",
                details=[{"field": "contractTemplate", "message": "Required when the service requires a contract"}],
            )
        is_purchasable = updates.get("is_purchasable", template.is_purchasable)
        if is_purchasable and updates.get("price", template.price) is None:
            raise ValidationError(
                "Invalid service template",
                details=[{"field": "price", "message": "A purchasable service needs a price"}],
            )

        with transaction(self.db, f"service template update {template_id}"):
            self.repo.update_template(self.db, template, **updates)
        logger.info(f"✏️ Service template {template_id} updated: {sorted(updates)}")
        return template
