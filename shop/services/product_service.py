"""商品查询（下单时获取商品快照）"""

from typing import NamedTuple, Optional
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from shop.core.exceptions import ProductNotFoundError
from shop.models.product import Product

logger = logging.getLogger(__name__)


class ProductSnapshot(NamedTuple):
    name: str
    sku: Optional[str]


class ProductService:

    def __init__(self, db: Session):
        self.db = db

    def get_snapshot(self, product_id: int) -> ProductSnapshot:
        """查询商品名称与SKU，商品不存在时抛出 ProductNotFoundError"""
        row = self.db.execute(
            select(Product.name, Product.sku).where(Product.id == product_id)
        ).one_or_none()

        if row is None:
            logger.warning(f"商品不存在: product_id={product_id}")
            raise ProductNotFoundError(product_id)

        return ProductSnapshot(name=row.name, sku=row.sku)
