"""依赖注入配置模块"""

# 数据库会话依赖
from shop.db.session import get_db

# Redis 依赖
from shop.core.redis import redis_client


def get_redis():
    """获取同步 Redis 客户端"""
    return redis_client


__all__ = ["get_db", "get_redis"]
