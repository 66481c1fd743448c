import pytest
import redis
from fastapi import FastAPI
from fastapi.testclient import TestClient

from redis_rate_limiter import RedisRateLimiter


class FakeRedis:
    """Just enough of the sorted-set API for the limiter."""

    def __init__(self):
        self.sets = {}

    def pipeline(self):
        return FakePipeline(self)

    def zremrangebyscore(self, key, low, high):
        entries = self.sets.setdefault(key, {})
        for member in [m for m, score in entries.items() if low <= score <= high]:
            del entries[member]

    def zcard(self, key):
        return len(self.sets.get(key, {}))

    def zadd(self, key, mapping):
        entries = self.sets.setdefault(key, {})
        for member, score in mapping.items():
            # Distinct members even within one clock tick
            entries[f"{member}-{len(entries)}"] = score

    def zcount(self, key, low, high):
        return sum(1 for score in self.sets.get(key, {}).values() if low <= score <= high)

    def expire(self, key, seconds):
        return True


class FakePipeline:
    def __init__(self, client):
        self.client = client
        self.calls = []

    def __getattr__(self, name):
        def queue(*args):
            self.calls.append((name, args))
            return self
        return queue

    def execute(self):
        return [getattr(self.client, name)(*args) for name, args in self.calls]


class BrokenRedis:
    def pipeline(self):
        raise redis.ConnectionError("connection refused")

    def zadd(self, *args):
        raise redis.ConnectionError("connection refused")


def build_client(redis_client, ip_limit=3, user_limit=2):
    app = FastAPI()
    app.add_middleware(
        RedisRateLimiter,
        redis_client=redis_client,
        requests_per_minute_ip=ip_limit,
        requests_per_minute_user=user_limit
    )

    @app.get("/ping")
    async def ping():
        return {"ok": True}

    return TestClient(app)


def test_ip_limit_returns_429_with_retry_after():
    client = build_client(FakeRedis())

    statuses = [client.get("/ping").status_code for _ in range(4)]

    assert statuses == [200, 200, 200, 429]
    response = client.get("/ping")
    assert response.headers["retry-after"] == "60"
    assert "Rate limit exceeded for IP" in response.json()["message"]


def test_session_limit_is_per_token():
    client = build_client(FakeRedis(), ip_limit=100, user_limit=2)
    alice = {"Authorization": "Bearer alice-token"}
    bob = {"Authorization": "Bearer bob-token"}

    assert [client.get("/ping", headers=alice).status_code for _ in range(3)] == [200, 200, 429]
    assert client.get("/ping", headers=bob).status_code == 200


def test_tokens_are_not_stored_raw():
    fake = FakeRedis()
    client = build_client(fake, ip_limit=100)

    client.get("/ping", headers={"Authorization": "Bearer very-secret-token"})

    assert not any("very-secret-token" in key for key in fake.sets)
    assert any(key.startswith("rate:session:") for key in fake.sets)


@pytest.mark.parametrize("attempts", [1, 5])
def test_fails_open_when_redis_is_down(attempts):
    client = build_client(BrokenRedis(), ip_limit=1)

    for _ in range(attempts):
        assert client.get("/ping").status_code == 200
