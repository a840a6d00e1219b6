"""Catalog domain schemas - Pydantic models for validation"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.validators import sanitize_text


class ServiceTemplateBase(BaseModel):
    description: Optional[str] = Field(default=None, max_length=5000)
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    isPurchasable: Optional[bool] = None
    isActive: Optional[bool] = None
    requiresContract: Optional[bool] = None
    contractTemplate: Optional[str] = Field(default=None, max_length=50000)
    maxQuantity: Optional[int] = Field(default=None, ge=1, le=1000)

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v):
        return v.lower() if v else v

    @field_validator("description")
    @classmethod
    def clean_description(cls, v):
        if v is None:
            return v
        return sanitize_text(v, max_length=5000)


class ServiceTemplateCreate(ServiceTemplateBase):
    """Schema for creating a service template"""

    name: str = Field(min_length=1, max_length=255)

    @field_validator("name")
    @classmethod
    def clean_name(cls, v):
        return sanitize_text(v, max_length=255)

    @model_validator(mode="after")
    def check_contract_text(self):
        if self.requiresContract and not self.contractTemplate:
            raise ValueError("contractTemplate is required when requiresContract is true")
        if self.isPurchasable and self.price is None:
            raise ValueError("A purchasable service needs a price")
        return self


class ServiceTemplateUpdate(ServiceTemplateBase):
    """Schema for updating a service template; omitted fields are left alone"""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)

    @field_validator("name")
    @classmethod
    def clean_name(cls, v):
        if v is None:
            return v
        return sanitize_text(v, max_length=255)


class StoreServiceResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    currency: str
    requiresContract: bool
    maxQuantity: int

    @classmethod
    def from_model(cls, template) -> "StoreServiceResponse":
        return cls(
            id=template.id,
            name=template.name,
            description=template.description,
            price=template.price,
            currency=template.currency,
            requiresContract=template.requires_contract,
            maxQuantity=template.max_quantity,
        )


class ServiceTemplateResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: Optional[Decimal] = None
    currency: str
    isPurchasable: bool
    isActive: bool
    requiresContract: bool
    contractTemplate: Optional[str] = None
    maxQuantity: int

    @classmethod
    def from_model(cls, template) -> "ServiceTemplateResponse":
        return cls(
            id=template.id,
            name=template.name,
            description=template.description,
            price=template.price,
            currency=template.currency,
            isPurchasable=template.is_purchasable,
            isActive=template.is_active,
            requiresContract=template.requires_contract,
            contractTemplate=template.contract_template,
            maxQuantity=template.max_quantity,
        )
