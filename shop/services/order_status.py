"""订单状态机

物流状态：pending -> confirmed -> processing -> shipped -> delivered，
另有 cancelled / refunded。

默认不校验状态流转，新状态无条件覆盖旧状态（例如 delivered -> pending 也会被接受）。
开启 ENFORCE_STATUS_TRANSITIONS 后按 ALLOWED_TRANSITIONS 校验，且：
- 取消仅限 pending / confirmed（can_be_cancelled）
- 发货仅限 confirmed / processing 且已支付（can_be_shipped）
"""

from datetime import datetime, timezone
from typing import Optional

from shop.core.exceptions import InvalidStatusTransitionError
from shop.models.order import Order, OrderStatus, PaymentStatus


ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: {OrderStatus.REFUNDED},
    OrderStatus.REFUNDED: set(),
}


def can_be_cancelled(order: Order) -> bool:
    return OrderStatus(order.status) in (OrderStatus.PENDING, OrderStatus.CONFIRMED)


def can_be_shipped(order: Order) -> bool:
    return (
        OrderStatus(order.status) in (OrderStatus.CONFIRMED, OrderStatus.PROCESSING)
        and order.payment_status == PaymentStatus.PAID
    )


def is_completed(order: Order) -> bool:
    return OrderStatus(order.status) == OrderStatus.DELIVERED


def is_transition_allowed(current: OrderStatus, new: OrderStatus) -> bool:
    if current == new:
        return True
    return new in ALLOWED_TRANSITIONS.get(OrderStatus(current), set())


def check_transition(order: Order, new_status: OrderStatus) -> bool:
    """按流转表及取消/发货前置条件校验一次状态变更"""
    new_status = OrderStatus(new_status)
    if new_status == OrderStatus(order.status):
        return True
    if not is_transition_allowed(order.status, new_status):
        return False
    if new_status == OrderStatus.CANCELLED:
        return can_be_cancelled(order)
    if new_status == OrderStatus.SHIPPED:
        return can_be_shipped(order)
    return True


def apply_status_change(
    order: Order,
    new_status: OrderStatus,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
    enforce_transitions: bool = False,
) -> Order:
    """在内存中修改订单状态及时间戳，由调用方一次性提交"""
    new_status = OrderStatus(new_status)
    if enforce_transitions and not check_transition(order, new_status):
        raise InvalidStatusTransitionError(OrderStatus(order.status).value, new_status.value)

    now = now or datetime.now(timezone.utc)
    order.status = new_status

    if new_status == OrderStatus.SHIPPED:
        order.shipped_at = now

    if new_status == OrderStatus.DELIVERED:
        order.delivered_at = now
        # 跳过 shipped 直接送达时补齐发货时间
        if order.shipped_at is None:
            order.shipped_at = now

    # 备注为覆盖而非追加
    if notes:
        order.notes = notes

    return order


def apply_payment_change(
    order: Order,
    new_payment_status: PaymentStatus,
    payment_reference: Optional[str] = None,
    notes: Optional[str] = None,
) -> Order:
    """修改支付状态，不影响物流状态，也不写时间戳"""
    order.payment_status = PaymentStatus(new_payment_status)

    if payment_reference:
        order.payment_reference = payment_reference

    if notes:
        order.notes = notes

    return order
