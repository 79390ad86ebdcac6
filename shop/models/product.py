from sqlalchemy import (
    Column,
    String,
    Integer,
    Numeric,
    Boolean,
    TIMESTAMP,
    CheckConstraint,
    Index,
    func,
)
from shop.db.base import Base, BigIntPK


class Product(Base):
    __tablename__ = "products"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    name = Column(
        String(255),
        nullable=False,
        comment="商品名称",
    )

    sku = Column(
        String(100),
        nullable=True,
        unique=True,
        comment="商品唯一SKU",
    )

    price = Column(
        Numeric(10, 2),
        nullable=False,
        comment="当前售价（下单时以请求价格为准）",
    )

    stock_quantity = Column(
        Integer,
        nullable=False,
        server_default="0",
        comment="库存数量",
    )

    is_active = Column(
        Boolean,
        nullable=False,
        server_default="1",
        comment="是否上架",
    )

    created_at = Column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at = Column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
        onupdate=func.now(),
    )

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
    )


Index(
    "idx_products_name",
    Product.name,
)
