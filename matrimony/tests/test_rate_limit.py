import pytest

from matrimony import core
from matrimony.cache import check_rate_limit


class FakeRedis:
    def __init__(self, fail=False):
        self.counts = {}
        self.ttls = {}
        self.fail = fail

    async def incr(self, key):
        if self.fail:
            raise ConnectionError('redis went away')
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key, seconds):
        self.ttls[key] = seconds


@pytest.mark.asyncio
async def test_allows_everything_without_redis(monkeypatch):
    monkeypatch.setattr(core, 'REDIS', None)
    for _ in range(5):
        assert await check_rate_limit(1, 'send_message', limit=1)


@pytest.mark.asyncio
async def test_limit_per_user_and_action(monkeypatch):
    redis = FakeRedis()
    monkeypatch.setattr(core, 'REDIS', redis)

    results = [await check_rate_limit(1, 'send_message', limit=3, window=60) for _ in range(4)]
    assert results == [True, True, True, False]
    assert await check_rate_limit(2, 'send_message', limit=3, window=60)
    assert await check_rate_limit(1, 'connection_request', limit=3, window=60)
    assert set(redis.ttls.values()) == {60}


@pytest.mark.asyncio
async def test_redis_errors_fail_open(monkeypatch):
    monkeypatch.setattr(core, 'REDIS', FakeRedis(fail=True))
    assert await check_rate_limit(1, 'send_message', limit=0)
