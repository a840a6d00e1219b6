import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base
from .shared.clock import utcnow
from .shared.enums import OrderStatus, PaymentStatus, UserRole

# Money columns: two decimal places, never floats
Money = Numeric(12, 2, asdecimal=True)


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


def generate_order_number():
    """Human-facing order reference, e.g. ORD-7F3A9C01B2"""
    return f"ORD-{uuid.uuid4().hex[:10].upper()}"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    role = Column(Enum(UserRole, native_enum=False, length=20), default=UserRole.CLIENT, nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    client = relationship("Client", back_populates="users")


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    name = Column(String(255), nullable=False)
    business_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)

    # Aggregates maintained by the order lifecycle; never negative
    lifetime_value = Column(Money, default=0, nullable=False)
    total_orders = Column(Integer, default=0, nullable=False)
    first_order_date = Column(DateTime(timezone=True), nullable=True)
    last_order_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    users = relationship("User", back_populates="client")
    orders = relationship("Order", back_populates="client")
    cart = relationship("Cart", back_populates="client", uselist=False)


class ServiceTemplate(Base):
    __tablename__ = "service_templates"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Money, nullable=True)  # Unpriced templates cannot be ordered
    currency = Column(String(10), default="usd", nullable=False)
    is_purchasable = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    requires_contract = Column(Boolean, default=False, nullable=False)
    contract_template = Column(Text, nullable=True)
    max_quantity = Column(Integer, default=10, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Cart(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), unique=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    client = relationship("Client", back_populates="cart")
    items = relationship(
        "CartItem", back_populates="cart", cascade="all, delete-orphan", order_by="CartItem.id"
    )


class CartItem(Base):
    __tablename__ = "cart_items"
    __table_args__ = (UniqueConstraint("cart_id", "service_template_id", name="uq_cart_item_template"),)

    id = Column(Integer, primary_key=True, index=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False)
    service_template_id = Column(Integer, ForeignKey("service_templates.id"), nullable=False)
    quantity = Column(Integer, default=1, nullable=False)

    cart = relationship("Cart", back_populates="items")
    service_template = relationship("ServiceTemplate")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(32), unique=True, index=True, default=generate_order_number)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)

    status = Column(
        Enum(OrderStatus, native_enum=False, length=20), default=OrderStatus.PENDING, nullable=False
    )
    payment_status = Column(
        Enum(PaymentStatus, native_enum=False, length=20),
        default=PaymentStatus.PENDING,
        nullable=False,
    )

    subtotal = Column(Money, nullable=False)
    tax = Column(Money, default=0, nullable=False)
    total = Column(Money, nullable=False)
    currency = Column(String(10), default="usd", nullable=False)

    stripe_session_id = Column(String(255), unique=True, nullable=True, index=True)
    stripe_payment_intent_id = Column(String(255), nullable=True, index=True)

    paid_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Versioned refund audit structure, see domain.refunds.schemas.OrderMetadata
    order_metadata = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    client = relationship("Client", back_populates="orders")
    items = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id"
    )
    timeline = relationship(
        "OrderTimeline",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderTimeline.id",
    )
    contract = relationship(
        "ServiceContract", back_populates="order", uselist=False, cascade="all, delete-orphan"
    )
    invoice = relationship("Invoice", back_populates="order", uselist=False)

    @property
    def requires_contract(self) -> bool:
        return any(item.requires_contract for item in self.items)


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    service_template_id = Column(Integer, ForeignKey("service_templates.id"), nullable=False)

    # Snapshots taken at purchase time
    service_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Money, nullable=False)
    total = Column(Money, nullable=False)
    requires_contract = Column(Boolean, default=False, nullable=False)

    order = relationship("Order", back_populates="items")
    service_template = relationship("ServiceTemplate")


class OrderTimeline(Base):
    """Append-only audit trail for an order"""

    __tablename__ = "order_timeline"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    completed_at = Column(DateTime(timezone=True), default=utcnow)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    order = relationship("Order", back_populates="timeline")


class ServiceContract(Base):
    __tablename__ = "service_contracts"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), unique=True, nullable=False)
    template_content = Column(Text, nullable=False, default="")

    # Signature details - immutable once signed_at is set
    signed_at = Column(DateTime(timezone=True), nullable=True)
    signature_data = Column(Text, nullable=True)
    signed_by_name = Column(String(255), nullable=True)
    signed_by_email = Column(String(255), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    order = relationship("Order", back_populates="contract")

    @property
    def is_signed(self) -> bool:
        return self.signed_at is not None


class SalesMetrics(Base):
    """Daily sales aggregate, only ever written through atomic upserts"""

    __tablename__ = "sales_metrics"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, unique=True, nullable=False, index=True)
    revenue = Column(Money, default=0, nullable=False)
    order_count = Column(Integer, default=0, nullable=False)
    avg_order_value = Column(Money, default=0, nullable=False)
    new_customers = Column(Integer, default=0, nullable=False)
    refund_amount = Column(Money, default=0, nullable=False)
    contracts_signed = Column(Integer, default=0, nullable=False)


class Webhook(Base):
    __tablename__ = "webhooks"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    url = Column(String(1000), nullable=False)
    headers = Column(JSON, nullable=True)  # Custom headers sent with every delivery
    events = Column(JSON, nullable=True)  # Subscribed event names
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    executions = relationship(
        "WebhookExecution", back_populates="webhook", cascade="all, delete-orphan"
    )

    def subscribes_to(self, event: str) -> bool:
        return bool(self.is_active) and event in (self.events or [])


class WebhookExecution(Base):
    __tablename__ = "webhook_executions"

    id = Column(Integer, primary_key=True, index=True)
    webhook_id = Column(Integer, ForeignKey("webhooks.id", ondelete="CASCADE"), nullable=False, index=True)
    event = Column(String(100), nullable=True)
    payload = Column(JSON, nullable=True)
    response = Column(JSON, nullable=True)
    status_code = Column(Integer, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    webhook = relationship("Webhook", back_populates="executions")

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.status_code is not None and self.status_code < 400
