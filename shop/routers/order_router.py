"""订单 API 路由"""

from fastapi import APIRouter, Depends, HTTPException, Path, Body
from sqlalchemy.orm import Session
import logging

from shop.core.dependencies import get_db, get_redis
from shop.services.order_service import OrderService
from shop.schemas.order import (
    CreateOrderRequest,
    UpdateStatusRequest,
    UpdatePaymentRequest,
    OrderResponse,
    OrderEnvelope,
    OrderStatisticsResponse,
    CeleryTaskResponse,
    TaskStatusResponse,
)
from tasks.order_tasks import refresh_order_statistics as celery_refresh_task

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/orders",
    tags=["订单管理"],
    responses={
        400: {"description": "请求参数错误"},
        404: {"description": "资源未找到"},
        409: {"description": "订单号冲突"},
        422: {"description": "请求验证失败"},
        500: {"description": "服务器内部错误"}
    }
)


@router.post(
    "",
    response_model=OrderEnvelope,
    status_code=201,
    summary="创建订单",
    description="""创建订单及其明细。

    **特点：**
    - 订单头与明细在同一事务内写入
    - 任一商品不存在则整体回滚
    - 税额默认按小计的 7.5% 计算
    """,
)
def create_order(
    request: CreateOrderRequest = Body(..., description="创建订单请求"),
    db: Session = Depends(get_db),
    redis = Depends(get_redis)
):
    try:
        service = OrderService(db, redis)
        order = service.create_order(request)
        return {
            "success": True,
            "message": "订单创建成功",
            "data": OrderResponse.model_validate(order)
        }
    except HTTPException:
        # 透传 HTTPException
        raise
    except Exception as e:
        logger.error(f"创建订单失败: {str(e)}")
        # 未知异常统一抛 500
        raise HTTPException(status_code=500, detail=str(e))


@router.get(
    "/statistics",
    response_model=OrderStatisticsResponse,
    summary="订单统计",
)
def get_statistics(
    db: Session = Depends(get_db),
    redis = Depends(get_redis)
):
    """订单统计（Redis 缓存）"""
    try:
        service = OrderService(db, redis)
        stats = service.get_statistics()
        return {"success": True, "message": "查询成功", "data": stats}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"查询订单统计失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post(
    "/statistics/refresh",
    response_model=CeleryTaskResponse,
    summary="异步刷新订单统计",
)
def refresh_statistics():
    """触发 Celery 异步刷新统计缓存"""
    try:
        task = celery_refresh_task.delay()
        return {
            "success": True,
            "message": "已提交统计刷新任务",
            "task_id": task.id
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Celery 任务提交失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get(
    "/statistics/refresh/{task_id}",
    response_model=TaskStatusResponse,
    summary="查询统计刷新任务状态",
)
def get_refresh_status(task_id: str):
    """查询 Celery 任务执行状态"""
    try:
        from celery_app import app
        task = app.AsyncResult(task_id)

        if task.state == 'PENDING':
            status = "任务等待中"
        elif task.state == 'SUCCESS':
            status = f"任务完成: {task.result}"
        elif task.state == 'FAILURE':
            status = f"任务失败: {str(task.info)}"
        else:
            status = f"任务状态: {task.state}"

        return {
            "task_id": task_id,
            "status": status,
            "state": task.state
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"查询任务状态失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get(
    "/{order_id}",
    response_model=OrderEnvelope,
    summary="查询订单",
)
def get_order(
    order_id: int = Path(..., gt=0, description="订单ID"),
    db: Session = Depends(get_db),
    redis = Depends(get_redis)
):
    try:
        service = OrderService(db, redis)
        order = service.get_order(order_id)
        return {
            "success": True,
            "message": "查询成功",
            "data": OrderResponse.model_validate(order)
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"查询订单失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.put(
    "/{order_id}/status",
    response_model=OrderEnvelope,
    summary="更新订单状态",
    description="""更新订单物流状态。

    **副作用：**
    - shipped：记录发货时间
    - delivered：记录送达时间，未发货时同时补齐发货时间
    - 传入备注时覆盖原备注
    """,
)
def update_status(
    order_id: int = Path(..., gt=0, description="订单ID"),
    request: UpdateStatusRequest = Body(...),
    db: Session = Depends(get_db),
    redis = Depends(get_redis)
):
    try:
        service = OrderService(db, redis)
        order = service.update_status(order_id, request.status, request.notes)
        return {
            "success": True,
            "message": "订单状态更新成功",
            "data": OrderResponse.model_validate(order)
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"更新订单状态失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.put(
    "/{order_id}/payment",
    response_model=OrderEnvelope,
    summary="更新支付状态",
)
def update_payment_status(
    order_id: int = Path(..., gt=0, description="订单ID"),
    request: UpdatePaymentRequest = Body(...),
    db: Session = Depends(get_db),
    redis = Depends(get_redis)
):
    try:
        service = OrderService(db, redis)
        order = service.update_payment_status(
            order_id,
            request.payment_status,
            request.payment_reference,
            request.notes,
        )
        return {
            "success": True,
            "message": "支付状态更新成功",
            "data": OrderResponse.model_validate(order)
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"更新支付状态失败: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
