"""订单金额计算（纯函数，无副作用）"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, NamedTuple, Optional, Union

from shop.core.config import settings

CENT = Decimal("0.01")

Number = Union[Decimal, int, str]


class OrderTotals(NamedTuple):
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal


def to_money(value: Number) -> Decimal:
    """转换为保留两位小数的 Decimal（四舍五入）"""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(unit_price: Number, quantity: int) -> Decimal:
    return to_money(Decimal(str(unit_price)) * quantity)


def calculate_totals(
    items: Iterable,
    tax_amount: Optional[Number] = None,
    shipping_amount: Number = 0,
    discount_amount: Number = 0,
    tax_rate: Optional[Number] = None,
) -> OrderTotals:
    """计算订单小计、税额与总额

    Args:
        items: 订单明细，每项需有 price 与 quantity 属性
        tax_amount: 显式税额，传入时原样使用（包括 0）
        shipping_amount: 运费，默认 0
        discount_amount: 优惠金额，默认 0
        tax_rate: 税率，默认取配置 TAX_RATE（7.5%）

    Returns:
        OrderTotals
    """
    subtotal = sum(
        (line_total(item.price, item.quantity) for item in items),
        Decimal("0"),
    )

    if tax_amount is None:
        rate = Decimal(str(tax_rate if tax_rate is not None else settings.TAX_RATE))
        tax = to_money(subtotal * rate)
    else:
        tax = to_money(tax_amount)

    shipping = to_money(shipping_amount)
    discount = to_money(discount_amount)
    total = subtotal + tax + shipping - discount

    return OrderTotals(
        subtotal=to_money(subtotal),
        tax_amount=tax,
        shipping_amount=shipping,
        discount_amount=discount,
        total_amount=to_money(total),
    )
