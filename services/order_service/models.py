import enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from shared.clock import utcnow
from shared.config.database import Base


class OrderStatus(str, enum.Enum):
    PENDING = "pending"          # created, not yet paid
    PAID = "paid"                # payment succeeded
    PROCESSING = "processing"    # preparing shipment
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, enum.Enum):
    CARD = "card"
    COD = "cod"
    KNET = "knet"
    PAYPAL = "paypal"
    OTHER = "other"


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_user_created", "user_id", "created_at"),
        Index("ix_orders_status_created", "status", "created_at"),
        Index("ix_orders_user_status", "user_id", "status"),
        CheckConstraint("total >= 0", name="ck_orders_total_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)

    subtotal = Column(Float, nullable=False)
    shipping_fee = Column(Float, nullable=False, default=0.0)
    tax_amount = Column(Float, nullable=False, default=0.0)
    total = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False)

    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.CARD.value)

    reserved_until = Column(DateTime, nullable=True, index=True)
    stock_released = Column(Boolean, nullable=False, default=False)

    # Provider bookkeeping: {provider, intentId, chargeId, lastEventId}
    payment_provider = Column(String(30), nullable=True)
    payment_intent_id = Column(String(255), nullable=True, index=True)
    payment_charge_id = Column(String(255), nullable=True)
    payment_last_event_id = Column(String(255), nullable=True)

    shipping_address = Column(JSON, nullable=False)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    items = relationship(
        "OrderItem",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    @property
    def payment(self) -> dict | None:
        if not self.payment_provider:
            return None
        return {
            "provider": self.payment_provider,
            "intent_id": self.payment_intent_id,
            "charge_id": self.payment_charge_id,
            "last_event_id": self.payment_last_event_id,
        }


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False, index=True)
    # Snapshot taken at order time; later catalog edits do not touch it
    product_name = Column(String, nullable=False)
    product_image = Column(String, nullable=True)
    unit_price = Column(Float, nullable=False)
    quantity = Column(Integer, nullable=False)
    line_total = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False)

    order = relationship("Order", back_populates="items")
