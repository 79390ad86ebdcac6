"""Redis 客户端配置模块"""

from redis import Redis
from redis.asyncio import Redis as AsyncRedis

from shop.core.config import settings

REDIS_URL = settings.redis_url

# 基础 Redis 客户端（统计缓存）
redis_client = Redis.from_url(REDIS_URL, decode_responses=True)
async_redis = AsyncRedis.from_url(REDIS_URL, decode_responses=True)

# 导出
__all__ = [
    "redis_client",
    "async_redis",
    "REDIS_URL"
]
