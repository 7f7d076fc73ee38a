import json
from datetime import timedelta
from typing import Any, Union

from tradejournal.models.db import redis_client


class RedisCache:
    """
    Redis 缓存封装类，未启用 Redis 时所有操作为空操作
    """
    def __init__(self, prefix: str = "trade_journal:"):
        self.prefix = prefix

    def _make_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str, is_json: bool = True) -> Any:
        if not redis_client:
            return None

        data = await redis_client.get(self._make_key(key))
        if data is None:
            return None

        if is_json:
            try:
                return json.loads(data)
            except ValueError:
                return data
        return data

    async def set(self, key: str, value: Any, expire: Union[int, timedelta] = None, is_json: bool = True) -> bool:
        if not redis_client:
            return False

        data = json.dumps(value, default=str) if is_json else str(value)
        return await redis_client.set(self._make_key(key), data, ex=expire)

    async def delete(self, key: str) -> bool:
        if not redis_client:
            return False
        return await redis_client.delete(self._make_key(key)) > 0

    async def incr(self, key: str) -> int:
        """自增计数器，未启用时恒为 0"""
        if not redis_client:
            return 0
        return await redis_client.incr(self._make_key(key))

    async def flush_all(self) -> bool:
        if not redis_client:
            return False
        keys = await redis_client.keys(f"{self.prefix}*")
        if keys:
            return await redis_client.delete(*keys) > 0
        return True


cache = RedisCache()


def trade_version_key(user_id: str) -> str:
    return f"trade_version:{user_id}"


async def get_trade_version(user_id: str) -> int:
    version = await cache.get(trade_version_key(user_id))
    return int(version or 0)


async def bump_trade_version(user_id: str) -> int:
    """交易数据变更后调用，使该用户的指标缓存失效"""
    return await cache.incr(trade_version_key(user_id))
