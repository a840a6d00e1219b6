"""Closed status types shared by the models, schemas and services"""

import enum


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    CLIENT = "CLIENT"


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    CONTRACT_SIGNED = "CONTRACT_SIGNED"
    COMPLETED = "COMPLETED"
    REFUNDED = "REFUNDED"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    SUCCEEDED = "SUCCEEDED"
    REFUNDED = "REFUNDED"
    FAILED = "FAILED"


class RefundType(str, enum.Enum):
    FULL = "full"
    PARTIAL = "partial"


class WebhookEvent(str, enum.Enum):
    ORDER_CREATED = "order.created"
    ORDER_PAID = "order.paid"
    ORDER_COMPLETED = "order.completed"
    ORDER_REFUNDED = "order.refunded"
    CONTRACT_SIGNED = "contract.signed"
