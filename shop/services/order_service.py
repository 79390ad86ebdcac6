"""订单服务实现"""

from sqlalchemy import select, func, case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime, timedelta, timezone
import logging
import random
import time
from redis import Redis
from redis.exceptions import RedisError

from shop.core.config import settings
from shop.core.exceptions import (
    OrderNotFoundError,
    DuplicateOrderNumberError,
    InvalidOrderAmountError,
)
from shop.models.order import Order, OrderStatus, PaymentStatus
from shop.models.order_item import OrderItem
from shop.schemas.order import CreateOrderRequest, OrderStatistics
from shop.services.pricing import calculate_totals, line_total, to_money
from shop.services.product_service import ProductService
from shop.services.order_status import apply_status_change, apply_payment_change

logger = logging.getLogger(__name__)

STATS_CACHE_KEY = "orders:statistics"
STATS_VERSION_KEY = "orders:statistics:version"


def generate_order_number(now_ms: Optional[int] = None) -> str:
    """生成订单号 ORD-<毫秒时间戳>-<3位随机数>

    不查询数据库判重：同一毫秒内只有 1000 个可用后缀，
    冲突由 orders.order_number 唯一约束兜底，并以 DuplicateOrderNumberError 抛出。
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"ORD-{now_ms}-{random.randint(0, 999):03d}"


def _is_order_number_conflict(exc: IntegrityError) -> bool:
    return "order_number" in str(exc.orig)


class OrderService:
    """订单核心服务类"""

    def __init__(self, db: Session, redis: Redis = None):
        self.db = db
        self.redis = redis
        self.products = ProductService(db)

    def create_order(self, request: CreateOrderRequest) -> Order:
        """创建订单（订单头与明细在同一事务内写入）

        任一商品不存在或任一步骤失败，整个事务回滚，不会留下订单头或部分明细。
        """
        order_number = generate_order_number()
        totals = calculate_totals(
            request.items,
            tax_amount=request.tax_amount,
            shipping_amount=request.shipping_amount,
            discount_amount=request.discount_amount,
        )
        if totals.total_amount < 0:
            payable = totals.total_amount + totals.discount_amount
            logger.warning(
                f"创建订单被拒绝: user_id={request.user_id}, "
                f"discount_amount={totals.discount_amount}, payable={payable}"
            )
            raise InvalidOrderAmountError(totals.discount_amount, payable)

        try:
            order = Order(
                user_id=request.user_id,
                order_number=order_number,
                status=OrderStatus.PENDING,
                subtotal=totals.subtotal,
                tax_amount=totals.tax_amount,
                shipping_amount=totals.shipping_amount,
                discount_amount=totals.discount_amount,
                total_amount=totals.total_amount,
                currency=settings.DEFAULT_CURRENCY,
                payment_status=PaymentStatus.PENDING,
                payment_method=request.payment_method,
                shipping_address=request.shipping_address.model_dump(),
                billing_address=(
                    request.billing_address.model_dump()
                    if request.billing_address else None
                ),
                notes=request.notes,
            )
            self.db.add(order)
            # 写入订单头以获取订单ID
            self.db.flush()

            for item in request.items:
                snapshot = self.products.get_snapshot(item.product_id)
                self.db.add(OrderItem(
                    order_id=order.id,
                    product_id=item.product_id,
                    product_name=snapshot.name,
                    product_sku=snapshot.sku,
                    quantity=item.quantity,
                    unit_price=to_money(item.price),
                    total_price=line_total(item.price, item.quantity),
                ))

            self.db.commit()
            logger.info(
                f"创建订单成功: order_number={order_number}, user_id={request.user_id}, "
                f"total_amount={totals.total_amount}"
            )

        except IntegrityError as e:
            self.db.rollback()
            if _is_order_number_conflict(e):
                logger.warning(f"订单号冲突: {order_number}")
                raise DuplicateOrderNumberError(order_number) from e
            logger.error(f"创建订单失败: {str(e)}")
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"创建订单失败: {str(e)}")
            raise

        self._invalidate_statistics()

        # 重新读取已提交的订单（含明细）
        order_id = order.id
        self.db.expire(order)
        return self.get_order(order_id)

    def get_order(self, order_id: int) -> Order:
        """查询订单（含明细）"""
        order = self.db.execute(
            select(Order).where(Order.id == order_id)
        ).scalar_one_or_none()

        if order is None:
            raise OrderNotFoundError(order_id)

        return order

    def update_status(
        self,
        order_id: int,
        new_status: OrderStatus,
        notes: Optional[str] = None,
    ) -> Order:
        """更新订单物流状态

        状态、时间戳与备注在一次提交中写入；并发更新同一订单时后写者覆盖先写者。
        """
        order = self.get_order(order_id)

        try:
            previous = order.status
            apply_status_change(
                order,
                new_status,
                notes=notes,
                enforce_transitions=settings.ENFORCE_STATUS_TRANSITIONS,
            )
            self.db.commit()
            logger.info(f"更新订单状态成功: order_id={order_id}, {previous} -> {order.status}")
        except Exception as e:
            self.db.rollback()
            logger.error(f"更新订单状态失败: order_id={order_id}, error={str(e)}")
            raise

        self._invalidate_statistics()

        self.db.refresh(order)
        return order

    def update_payment_status(
        self,
        order_id: int,
        new_payment_status: PaymentStatus,
        payment_reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Order:
        """更新支付状态（不影响物流状态）"""
        order = self.get_order(order_id)

        try:
            apply_payment_change(
                order,
                new_payment_status,
                payment_reference=payment_reference,
                notes=notes,
            )
            self.db.commit()
            logger.info(
                f"更新支付状态成功: order_id={order_id}, payment_status={order.payment_status}"
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"更新支付状态失败: order_id={order_id}, error={str(e)}")
            raise

        self._invalidate_statistics()

        self.db.refresh(order)
        return order

    def get_statistics(self) -> OrderStatistics:
        """订单统计（带缓存）"""
        if self.redis:
            try:
                cached = self.redis.get(STATS_CACHE_KEY)
            except RedisError as e:
                logger.warning(f"读取统计缓存失败: {e}")
                cached = None
            if cached is not None:
                logger.debug("Cache hit for order statistics")
                return OrderStatistics.model_validate_json(cached)

        return self.refresh_statistics()

    def refresh_statistics(self) -> OrderStatistics:
        """重新计算订单统计并写入缓存

        计算期间若有写操作失效了缓存（版本号变化），本次结果只返回、不写入缓存
        """
        version = self._statistics_version()
        stats = self._compute_statistics()

        if self.redis:
            try:
                if self._statistics_version() != version:
                    logger.debug("Statistics invalidated during refresh, skip cache set")
                    return stats
                self.redis.setex(
                    STATS_CACHE_KEY,
                    settings.STATISTICS_CACHE_TTL,
                    stats.model_dump_json(),
                )
                logger.debug("Cache set for order statistics")
            except RedisError as e:
                logger.warning(f"写入统计缓存失败: {e}")

        return stats

    def _statistics_version(self):
        if not self.redis:
            return None
        try:
            return self.redis.get(STATS_VERSION_KEY)
        except RedisError as e:
            logger.warning(f"读取统计缓存版本失败: {e}")
            return None

    def _compute_statistics(self) -> OrderStatistics:
        now = datetime.now(timezone.utc)
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)

        def count_where(condition):
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        row = self.db.execute(
            select(
                func.count(Order.id).label("total_orders"),
                count_where(Order.status == OrderStatus.PENDING).label("pending_orders"),
                count_where(Order.status == OrderStatus.CONFIRMED).label("confirmed_orders"),
                count_where(Order.status == OrderStatus.PROCESSING).label("processing_orders"),
                count_where(Order.status == OrderStatus.SHIPPED).label("shipped_orders"),
                count_where(Order.status == OrderStatus.DELIVERED).label("delivered_orders"),
                count_where(Order.status == OrderStatus.CANCELLED).label("cancelled_orders"),
                count_where(Order.status == OrderStatus.REFUNDED).label("refunded_orders"),
                count_where(Order.payment_status == PaymentStatus.PAID).label("paid_orders"),
                count_where(Order.payment_status == PaymentStatus.PENDING).label("pending_payments"),
                func.coalesce(func.sum(Order.total_amount), 0).label("total_revenue"),
                func.coalesce(func.avg(Order.total_amount), 0).label("average_order_value"),
                count_where(Order.created_at >= today).label("orders_today"),
                count_where(Order.created_at >= today - timedelta(days=7)).label("orders_this_week"),
                count_where(Order.created_at >= today - timedelta(days=30)).label("orders_this_month"),
            )
        ).one()

        data = dict(row._mapping)
        data["total_revenue"] = to_money(data["total_revenue"])
        data["average_order_value"] = to_money(data["average_order_value"])
        return OrderStatistics(**data)

    def _invalidate_statistics(self):
        if not self.redis:
            return
        try:
            self.redis.delete(STATS_CACHE_KEY)
            self.redis.incr(STATS_VERSION_KEY)
            logger.debug("Cache invalidated for order statistics")
        except RedisError as e:
            logger.warning(f"失效统计缓存失败: {e}")
