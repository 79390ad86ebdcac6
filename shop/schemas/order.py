"""订单请求/响应模型

请求模型即订单的校验关口：载荷在进入服务层之前完成校验，
校验失败不会产生任何持久化副作用。模型类在导入时构建一次，运行期不修改。
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal
from datetime import datetime

from shop.models.order import OrderStatus, PaymentStatus, PaymentMethod


# ==================== 请求模型 ====================

class Address(BaseModel):
    """收货/账单地址"""
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    address_line_1: str = Field(..., min_length=1, max_length=255)
    address_line_2: str = Field("", max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field("Nigeria", max_length=100)
    phone: str = Field("", pattern=r"^$|^[+]?[1-9][0-9]{0,15}$")


class OrderItemRequest(BaseModel):
    """订单明细请求"""
    product_id: int = Field(
        ...,
        gt=0,
        description="商品ID",
        examples=[1]
    )
    quantity: int = Field(
        ...,
        ge=1,
        description="购买数量",
        examples=[2]
    )
    price: Decimal = Field(
        ...,
        ge=0,
        decimal_places=2,
        description="下单单价",
        examples=["10.00"]
    )


class CreateOrderRequest(BaseModel):
    """创建订单请求"""
    user_id: int = Field(..., gt=0, description="下单用户ID")
    items: List[OrderItemRequest] = Field(
        ...,
        min_length=1,
        description="订单明细，至少一项"
    )
    shipping_address: Address
    billing_address: Optional[Address] = None
    payment_method: PaymentMethod
    notes: str = Field("", max_length=1000)
    discount_amount: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    shipping_amount: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    # 显式传入时原样使用，否则按 7.5% 计算
    tax_amount: Optional[Decimal] = Field(None, ge=0, decimal_places=2)


class UpdateStatusRequest(BaseModel):
    """更新订单状态请求"""
    status: OrderStatus
    notes: Optional[str] = Field(None, max_length=1000)


class UpdatePaymentRequest(BaseModel):
    """更新支付状态请求"""
    payment_status: PaymentStatus
    payment_reference: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=1000)


# ==================== 响应模型 ====================

class BaseResponse(BaseModel):
    """基础响应模型"""
    success: bool = Field(
        ...,
        description="请求是否成功"
    )
    message: Optional[str] = Field(
        None,
        description="响应消息"
    )


class OrderItemResponse(BaseModel):
    id: int
    product_id: int
    product_name: str
    product_sku: Optional[str] = None
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: int
    user_id: int
    order_number: str
    status: OrderStatus
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    currency: str
    payment_status: PaymentStatus
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = None
    shipping_address: dict
    billing_address: Optional[dict] = None
    notes: Optional[str] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []

    class Config:
        from_attributes = True


class OrderEnvelope(BaseResponse):
    """单个订单响应"""
    data: OrderResponse


class OrderStatistics(BaseModel):
    total_orders: int = 0
    pending_orders: int = 0
    confirmed_orders: int = 0
    processing_orders: int = 0
    shipped_orders: int = 0
    delivered_orders: int = 0
    cancelled_orders: int = 0
    refunded_orders: int = 0
    paid_orders: int = 0
    pending_payments: int = 0
    total_revenue: Decimal = Decimal("0")
    average_order_value: Decimal = Decimal("0")
    orders_today: int = 0
    orders_this_week: int = 0
    orders_this_month: int = 0


class OrderStatisticsResponse(BaseResponse):
    data: OrderStatistics


class CeleryTaskResponse(BaseResponse):
    """Celery任务响应"""
    task_id: Optional[str] = Field(
        None,
        description="任务ID"
    )


class TaskStatusResponse(BaseModel):
    """任务状态响应"""
    task_id: str = Field(
        ...,
        description="任务ID"
    )
    status: str = Field(
        ...,
        description="任务状态描述"
    )
    state: str = Field(
        ...,
        description="任务状态码"
    )
