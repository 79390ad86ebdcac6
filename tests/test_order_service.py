"""订单服务单元测试"""
import re
import pytest
from decimal import Decimal
from unittest.mock import patch
from sqlalchemy import select, func
from sqlalchemy.exc import OperationalError

from shop.core.exceptions import (
    OrderNotFoundError,
    ProductNotFoundError,
    DuplicateOrderNumberError,
    InvalidStatusTransitionError,
    InvalidOrderAmountError,
)
from shop.models.order import Order, OrderStatus, PaymentStatus, PaymentMethod
from shop.models.order_item import OrderItem
from shop.schemas.order import CreateOrderRequest, OrderStatistics
from shop.services.order_service import (
    OrderService,
    generate_order_number,
    STATS_CACHE_KEY,
    STATS_VERSION_KEY,
)


def count_rows(db, model):
    return db.execute(select(func.count()).select_from(model)).scalar_one()


class TestGenerateOrderNumber:

    def test_format(self):
        assert re.fullmatch(r"ORD-\d{13}-\d{3}", generate_order_number())

    def test_uses_given_timestamp(self):
        assert generate_order_number(1750501800000).startswith("ORD-1750501800000-")

    def test_same_millisecond_collision_space(self):
        """同一毫秒内最多 1000 个不同订单号，冲突依赖唯一约束兜底"""
        numbers = {generate_order_number(1750501800000) for _ in range(10_000)}

        assert len(numbers) <= 1000
        assert all(re.fullmatch(r"ORD-1750501800000-\d{3}", n) for n in numbers)


class TestCreateOrder:
    """订单创建测试类"""

    def test_create_order_success(self, db_session, mock_redis, order_request, products):
        service = OrderService(db_session, mock_redis)
        order = service.create_order(order_request)

        assert order.id is not None
        assert order.status == OrderStatus.PENDING
        assert order.payment_status == PaymentStatus.PENDING
        assert order.payment_method == PaymentMethod.CARD
        assert order.subtotal == Decimal("20.00")
        assert order.tax_amount == Decimal("1.50")
        assert order.total_amount == Decimal("21.50")
        assert order.currency == "NGN"
        assert order.shipping_address["city"] == "Lagos"
        assert order.billing_address is None
        assert order.shipped_at is None
        assert order.delivered_at is None

        assert len(order.items) == 1
        line = order.items[0]
        assert line.product_id == products[0].id
        assert line.product_name == "Plantain Chips"
        assert line.product_sku == "SKU-001"
        assert line.quantity == 2
        assert line.unit_price == Decimal("10.00")
        assert line.total_price == Decimal("20.00")

        # 写入后失效统计缓存
        mock_redis.delete.assert_called_once_with(STATS_CACHE_KEY)

    def test_total_invariant_with_shipping_and_discount(self, db_session, order_payload, products):
        order_payload["items"].append({"product_id": products[1].id, "quantity": 3, "price": "4.25"})
        order_payload["shipping_amount"] = "5.00"
        order_payload["discount_amount"] = "2.00"

        order = OrderService(db_session).create_order(CreateOrderRequest(**order_payload))

        assert order.subtotal == Decimal("32.75")
        assert order.tax_amount == Decimal("2.46")  # 32.75 * 0.075 = 2.45625
        assert order.total_amount == (
            order.subtotal + order.tax_amount + order.shipping_amount - order.discount_amount
        )
        assert [i.product_sku for i in order.items] == ["SKU-001", "SKU-002"]

    def test_explicit_tax_amount(self, db_session, order_payload):
        order_payload["tax_amount"] = "0"

        order = OrderService(db_session).create_order(CreateOrderRequest(**order_payload))

        assert order.tax_amount == Decimal("0.00")
        assert order.total_amount == Decimal("20.00")

    def test_discount_above_payable_rejected_before_write(self, db_session, mock_redis, order_payload):
        order_payload["discount_amount"] = "50.00"

        with pytest.raises(InvalidOrderAmountError) as exc_info:
            OrderService(db_session, mock_redis).create_order(CreateOrderRequest(**order_payload))

        assert exc_info.value.status_code == 422
        assert exc_info.value.payable_amount == Decimal("21.50")
        assert count_rows(db_session, Order) == 0
        assert count_rows(db_session, OrderItem) == 0
        mock_redis.delete.assert_not_called()

    def test_discount_equal_to_payable_gives_zero_total(self, db_session, order_payload):
        order_payload["discount_amount"] = "21.50"

        order = OrderService(db_session).create_order(CreateOrderRequest(**order_payload))

        assert order.total_amount == Decimal("0.00")

    def test_item_price_is_request_price_not_live_price(self, db_session, order_payload, products):
        order_payload["items"][0]["price"] = "7.50"

        order = OrderService(db_session).create_order(CreateOrderRequest(**order_payload))

        assert products[0].price == Decimal("10.00")
        assert order.items[0].unit_price == Decimal("7.50")
        assert order.items[0].total_price == Decimal("15.00")

    def test_item_snapshot_survives_product_change(self, db_session, order_request, products):
        service = OrderService(db_session)
        order = service.create_order(order_request)

        products[0].name = "Plantain Chips (New Recipe)"
        products[0].sku = "SKU-001-B"
        db_session.commit()

        db_session.expire_all()
        reloaded = service.get_order(order.id)
        assert reloaded.items[0].product_name == "Plantain Chips"
        assert reloaded.items[0].product_sku == "SKU-001"

    def test_billing_address_persisted(self, db_session, order_payload, shipping_address):
        order_payload["billing_address"] = dict(shipping_address, address_line_1="3 Broad Street")

        order = OrderService(db_session).create_order(CreateOrderRequest(**order_payload))

        assert order.billing_address["address_line_1"] == "3 Broad Street"
        assert order.billing_address["country"] == "Nigeria"

    def test_unknown_product_rolls_back_everything(self, db_session, mock_redis, order_payload):
        """任一商品不存在：不留订单头，也不留明细"""
        order_payload["items"].append({"product_id": 999, "quantity": 1, "price": "1.00"})
        service = OrderService(db_session, mock_redis)

        with pytest.raises(ProductNotFoundError) as exc_info:
            service.create_order(CreateOrderRequest(**order_payload))

        assert exc_info.value.status_code == 404
        assert exc_info.value.product_id == 999
        assert "999" in exc_info.value.detail
        assert count_rows(db_session, Order) == 0
        assert count_rows(db_session, OrderItem) == 0
        mock_redis.delete.assert_not_called()

    def test_persistence_fault_propagates_after_rollback(self, db_session, order_request):
        fault = OperationalError("COMMIT", {}, Exception("database is locked"))
        service = OrderService(db_session)

        with patch.object(db_session, "commit", side_effect=fault):
            with pytest.raises(OperationalError) as exc_info:
                service.create_order(order_request)

        assert exc_info.value is fault
        assert count_rows(db_session, Order) == 0
        assert count_rows(db_session, OrderItem) == 0

    def test_duplicate_order_number_is_distinct_error(self, db_session, order_request):
        service = OrderService(db_session)

        with patch("shop.services.order_service.generate_order_number",
                   return_value="ORD-1750501800000-042"):
            service.create_order(order_request)

            with pytest.raises(DuplicateOrderNumberError) as exc_info:
                service.create_order(order_request)

        assert exc_info.value.status_code == 409
        assert exc_info.value.retryable is True
        assert count_rows(db_session, Order) == 1
        assert count_rows(db_session, OrderItem) == 1

    def test_identical_payloads_create_distinct_orders(self, db_session, order_request):
        service = OrderService(db_session)

        with patch("shop.services.order_service.random.randint", side_effect=[1, 2]), \
             patch("shop.services.order_service.time.time", return_value=1750501800.0):
            first = service.create_order(order_request)
            second = service.create_order(order_request)

        assert first.id != second.id
        assert first.order_number == "ORD-1750501800000-001"
        assert second.order_number == "ORD-1750501800000-002"
        assert count_rows(db_session, Order) == 2


class TestGetOrder:

    def test_get_order_not_found(self, db_session):
        with pytest.raises(OrderNotFoundError) as exc_info:
            OrderService(db_session).get_order(12345)

        assert exc_info.value.status_code == 404


class TestUpdateStatus:
    """订单状态更新测试类"""

    def test_delivered_directly_sets_both_timestamps(self, db_session, order_request):
        service = OrderService(db_session)
        order = service.create_order(order_request)

        updated = service.update_status(order.id, OrderStatus.DELIVERED)

        assert updated.status == OrderStatus.DELIVERED
        assert updated.shipped_at is not None
        assert updated.delivered_at is not None
        assert updated.shipped_at == updated.delivered_at

    def test_shipped_then_delivered(self, db_session, order_request):
        service = OrderService(db_session)
        order = service.create_order(order_request)

        shipped = service.update_status(order.id, OrderStatus.SHIPPED)
        shipped_at = shipped.shipped_at
        delivered = service.update_status(order.id, OrderStatus.DELIVERED)

        assert delivered.shipped_at == shipped_at
        assert delivered.shipped_at <= delivered.delivered_at

    def test_notes_are_replaced(self, db_session, order_payload):
        order_payload["notes"] = "call before delivery"
        service = OrderService(db_session)
        order = service.create_order(CreateOrderRequest(**order_payload))

        updated = service.update_status(order.id, OrderStatus.CONFIRMED, notes="confirmed by phone")

        assert updated.notes == "confirmed by phone"
        assert "call before delivery" not in updated.notes

    def test_unrestricted_transition_by_default(self, db_session, order_request):
        service = OrderService(db_session)
        order = service.create_order(order_request)
        service.update_status(order.id, OrderStatus.DELIVERED)

        updated = service.update_status(order.id, OrderStatus.PENDING)

        assert updated.status == OrderStatus.PENDING

    def test_enforced_transition_rolls_back(self, db_session, order_request):
        service = OrderService(db_session)
        order = service.create_order(order_request)
        service.update_status(order.id, OrderStatus.DELIVERED)

        with patch("shop.services.order_service.settings.ENFORCE_STATUS_TRANSITIONS", True):
            with pytest.raises(InvalidStatusTransitionError):
                service.update_status(order.id, OrderStatus.PENDING)

        db_session.expire_all()
        assert service.get_order(order.id).status == OrderStatus.DELIVERED

    def test_update_status_not_found(self, db_session, mock_redis):
        with pytest.raises(OrderNotFoundError):
            OrderService(db_session, mock_redis).update_status(404, OrderStatus.SHIPPED)

        mock_redis.delete.assert_not_called()

    def test_failed_commit_leaves_row_unchanged(self, db_session, order_request):
        service = OrderService(db_session)
        order = service.create_order(order_request)
        fault = OperationalError("COMMIT", {}, Exception("connection reset"))

        with patch.object(db_session, "commit", side_effect=fault):
            with pytest.raises(OperationalError):
                service.update_status(order.id, OrderStatus.SHIPPED, notes="handed to courier")

        db_session.expire_all()
        reloaded = service.get_order(order.id)
        assert reloaded.status == OrderStatus.PENDING
        assert reloaded.shipped_at is None
        assert reloaded.notes == ""


class TestUpdatePaymentStatus:
    """支付状态更新测试类"""

    def test_paid_with_reference(self, db_session, mock_redis, order_request):
        service = OrderService(db_session, mock_redis)
        order = service.create_order(order_request)
        service.update_status(order.id, OrderStatus.PROCESSING)

        updated = service.update_payment_status(order.id, PaymentStatus.PAID, payment_reference="TXN123")

        assert updated.status == OrderStatus.PROCESSING
        assert updated.payment_status == PaymentStatus.PAID
        assert updated.payment_reference == "TXN123"

    def test_payment_notes_replace(self, db_session, order_payload):
        order_payload["notes"] = "first note"
        service = OrderService(db_session)
        order = service.create_order(CreateOrderRequest(**order_payload))

        updated = service.update_payment_status(order.id, PaymentStatus.FAILED, notes="card declined")

        assert updated.notes == "card declined"
        assert updated.payment_reference is None

    def test_update_payment_not_found(self, db_session):
        with pytest.raises(OrderNotFoundError):
            OrderService(db_session).update_payment_status(404, PaymentStatus.PAID)


class TestStatistics:
    """订单统计测试类"""

    def test_statistics_counts(self, db_session, order_request):
        service = OrderService(db_session)
        first = service.create_order(order_request)
        second = service.create_order(order_request)
        service.update_status(second.id, OrderStatus.SHIPPED)
        service.update_payment_status(first.id, PaymentStatus.PAID)

        stats = service.get_statistics()

        assert stats.total_orders == 2
        assert stats.pending_orders == 1
        assert stats.shipped_orders == 1
        assert stats.paid_orders == 1
        assert stats.pending_payments == 1
        assert stats.total_revenue == Decimal("43.00")
        assert stats.average_order_value == Decimal("21.50")
        assert stats.orders_this_month == 2

    def test_statistics_empty(self, db_session):
        stats = OrderService(db_session).get_statistics()

        assert stats.total_orders == 0
        assert stats.total_revenue == Decimal("0.00")

    def test_statistics_cache_hit(self, db_session, mock_redis):
        mock_redis.get.return_value = OrderStatistics(total_orders=9).model_dump_json()

        with patch.object(db_session, "execute") as mock_execute:
            stats = OrderService(db_session, mock_redis).get_statistics()

        assert stats.total_orders == 9
        mock_redis.get.assert_called_once_with(STATS_CACHE_KEY)
        # 缓存命中不应该查询数据库
        mock_execute.assert_not_called()

    def test_statistics_cache_miss_sets_cache(self, db_session, mock_redis):
        stats = OrderService(db_session, mock_redis).get_statistics()

        assert stats.total_orders == 0
        mock_redis.setex.assert_called_once()
        key, ttl, payload = mock_redis.setex.call_args[0]
        assert key == STATS_CACHE_KEY
        assert ttl == 300
        assert OrderStatistics.model_validate_json(payload) == stats

    def test_invalidation_bumps_version(self, db_session, mock_redis, order_request):
        OrderService(db_session, mock_redis).create_order(order_request)

        mock_redis.delete.assert_called_once_with(STATS_CACHE_KEY)
        mock_redis.incr.assert_called_once_with(STATS_VERSION_KEY)

    def test_refresh_skips_cache_when_invalidated_meanwhile(self, db_session, mock_redis):
        """统计计算期间版本号变化，结果不写入缓存"""
        mock_redis.get.side_effect = [None, "3", "4"]

        stats = OrderService(db_session, mock_redis).get_statistics()

        assert stats.total_orders == 0
        mock_redis.setex.assert_not_called()
