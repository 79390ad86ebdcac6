import enum

from sqlalchemy import (
    Column,
    BigInteger,
    String,
    Text,
    Numeric,
    TIMESTAMP,
    JSON,
    Enum,
    CheckConstraint,
    UniqueConstraint,
    Index,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from shop.db.base import Base, BigIntPK
from shop.core.config import settings


# 1️ 订单状态枚举（物流生命周期）

class OrderStatus(str, enum.Enum):
    PENDING = "pending"          # 待确认
    CONFIRMED = "confirmed"      # 已确认
    PROCESSING = "processing"    # 处理中
    SHIPPED = "shipped"          # 已发货
    DELIVERED = "delivered"      # 已送达
    CANCELLED = "cancelled"      # 已取消
    REFUNDED = "refunded"        # 已退款


# 2️ 支付状态枚举（与物流状态相互独立）

class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class PaymentMethod(str, enum.Enum):
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    CASH_ON_DELIVERY = "cash_on_delivery"
    WALLET = "wallet"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


# PostgreSQL 使用 JSONB，其它方言（测试用 SQLite）退化为 JSON
AddressJSON = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


# 3️ 订单主表

class Order(Base):
    __tablename__ = "orders"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    user_id = Column(
        BigInteger,
        nullable=False,
        index=True,
        comment="下单用户ID",
    )

    # 订单号创建后不可修改
    order_number = Column(
        String(50),
        nullable=False,
        comment="订单号 ORD-<毫秒时间戳>-<3位随机数>",
    )

    status = Column(
        Enum(
            OrderStatus,
            name="order_status_type",
            values_callable=_enum_values,
        ),
        nullable=False,
        default=OrderStatus.PENDING,
        server_default=OrderStatus.PENDING.value,
        comment="订单状态",
    )

    subtotal = Column(Numeric(10, 2), nullable=False, default=0, server_default="0")
    tax_amount = Column(Numeric(10, 2), nullable=False, default=0, server_default="0")
    shipping_amount = Column(Numeric(10, 2), nullable=False, default=0, server_default="0")
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0, server_default="0")
    total_amount = Column(
        Numeric(10, 2),
        nullable=False,
        default=0,
        server_default="0",
        comment="subtotal + tax_amount + shipping_amount - discount_amount",
    )

    currency = Column(
        String(3),
        nullable=False,
        default=lambda: settings.DEFAULT_CURRENCY,
        comment="币种",
    )

    payment_status = Column(
        Enum(
            PaymentStatus,
            name="payment_status_type",
            values_callable=_enum_values,
        ),
        nullable=False,
        default=PaymentStatus.PENDING,
        server_default=PaymentStatus.PENDING.value,
        comment="支付状态",
    )

    payment_method = Column(
        Enum(
            PaymentMethod,
            name="payment_method_type",
            values_callable=_enum_values,
        ),
        nullable=True,
        comment="支付方式",
    )

    payment_reference = Column(
        String(255),
        nullable=True,
        comment="支付流水号",
    )

    shipping_address = Column(AddressJSON, nullable=False, comment="收货地址")
    billing_address = Column(AddressJSON, nullable=True, comment="账单地址")

    notes = Column(Text, nullable=True)

    shipped_at = Column(TIMESTAMP(timezone=True), nullable=True)
    delivered_at = Column(TIMESTAMP(timezone=True), nullable=True)

    created_at = Column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at = Column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
        lazy="selectin",
    )

    __table_args__ = (
        # 订单号唯一性的最后一道防线
        UniqueConstraint("order_number", name="uq_orders_order_number"),
        CheckConstraint("subtotal >= 0", name="ck_orders_subtotal_non_negative"),
        CheckConstraint("tax_amount >= 0", name="ck_orders_tax_non_negative"),
        CheckConstraint("shipping_amount >= 0", name="ck_orders_shipping_non_negative"),
        CheckConstraint("discount_amount >= 0", name="ck_orders_discount_non_negative"),
        CheckConstraint("total_amount >= 0", name="ck_orders_total_non_negative"),
    )


# 4️ 高频查询索引

Index("idx_orders_status", Order.status)
Index("idx_orders_payment_status", Order.payment_status)
Index("idx_orders_created_at", Order.created_at)
