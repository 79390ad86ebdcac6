"""订单服务业务异常

业务异常直接继承 HTTPException，服务层抛出后由路由层透传，
全局异常处理器统一转换为 {"success": False, "message": ...}。
持久化异常（SQLAlchemyError）回滚后原样抛出，不在此处定义。
"""

from fastapi import HTTPException


class OrderNotFoundError(HTTPException):
    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(status_code=404, detail=f"订单不存在: order_id={order_id}")


class ProductNotFoundError(HTTPException):
    """下单引用的商品不存在，整个事务已回滚"""

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(status_code=404, detail=f"商品不存在: product_id={product_id}")


class DuplicateOrderNumberError(HTTPException):
    """订单号唯一约束冲突，调用方可重新提交"""

    retryable = True

    def __init__(self, order_number: str):
        self.order_number = order_number
        super().__init__(status_code=409, detail=f"订单号冲突，请重试: {order_number}")


class InvalidStatusTransitionError(HTTPException):
    def __init__(self, current_status: str, new_status: str):
        self.current_status = current_status
        self.new_status = new_status
        super().__init__(
            status_code=400,
            detail=f"不允许的订单状态变更: {current_status} -> {new_status}",
        )


class InvalidOrderAmountError(HTTPException):
    """优惠金额超过 小计 + 税额 + 运费，订单总额为负"""

    def __init__(self, discount_amount, payable_amount):
        self.discount_amount = discount_amount
        self.payable_amount = payable_amount
        super().__init__(
            status_code=422,
            detail=f"优惠金额 {discount_amount} 超过应付金额 {payable_amount}",
        )
