from sqlalchemy import (
    Column,
    BigInteger,
    String,
    Integer,
    Numeric,
    TIMESTAMP,
    ForeignKey,
    CheckConstraint,
    func,
)
from sqlalchemy.orm import relationship
from shop.db.base import Base, BigIntPK


class OrderItem(Base):
    """订单明细，随订单一次性创建，之后不再修改"""

    __tablename__ = "order_items"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    order_id = Column(
        BigInteger,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="订单ID",
    )

    product_id = Column(
        BigInteger,
        nullable=False,
        index=True,
        comment="商品ID",
    )

    # 下单时的商品快照，商品后续变更不影响历史订单
    product_name = Column(
        String(255),
        nullable=False,
        comment="商品名称快照",
    )

    product_sku = Column(
        String(100),
        nullable=True,
        comment="商品SKU快照",
    )

    quantity = Column(
        Integer,
        nullable=False,
        comment="购买数量",
    )

    unit_price = Column(
        Numeric(10, 2),
        nullable=False,
        comment="下单时约定单价",
    )

    total_price = Column(
        Numeric(10, 2),
        nullable=False,
        comment="unit_price * quantity",
    )

    created_at = Column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_order_items_unit_price_non_negative"),
    )
