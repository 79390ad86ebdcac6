"""订单相关的 Celery 任务"""

from celery_app import app
from shop.db.session import SessionLocal
from shop.services.order_service import OrderService
from shop.core.redis import redis_client
import logging

logger = logging.getLogger(__name__)

@app.task(name='tasks.orders.refresh_order_statistics')
def refresh_order_statistics():
    """重新计算订单统计并写入 Redis 缓存

    Returns:
        统计结果（JSON 可序列化）
    """
    db = SessionLocal()
    try:
        service = OrderService(db, redis_client)
        stats = service.refresh_statistics()
        logger.info(f"订单统计刷新完成: total_orders={stats.total_orders}")
        return stats.model_dump(mode="json")
    except Exception as e:
        logger.error(f"订单统计刷新失败: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()

# 导出任务
__all__ = [
    'refresh_order_statistics',
]
