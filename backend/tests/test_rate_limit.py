from haygame import create_app
from haygame.rate_limit import RateLimiter, TokenBucket

from conftest import TestConfig


class ManualClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_bucket_refills_over_the_window():
    bucket = TokenBucket(capacity=2, refill_per_sec=1.0, tokens=2, updated_at=0.0)
    assert bucket.consume(0.0)
    assert bucket.consume(0.0)
    assert not bucket.consume(0.5)
    assert bucket.consume(1.0)


def test_limiter_is_per_key():
    clock = ManualClock()
    limiter = RateLimiter(capacity=3, window_sec=60, clock=clock)
    assert [limiter.allow('1.1.1.1') for _ in range(4)] == [True, True, True, False]
    assert limiter.allow('2.2.2.2')
    clock.now = 20.0
    assert limiter.allow('1.1.1.1')
    assert not limiter.allow('1.1.1.1')


def test_limiter_evicts_idle_buckets_when_full():
    clock = ManualClock()
    limiter = RateLimiter(capacity=5, window_sec=10, max_keys=2, clock=clock)
    limiter.allow('a')
    clock.now = 5.0
    limiter.allow('b')
    clock.now = 12.0
    limiter.allow('c')
    assert len(limiter) == 2
    clock.now = 13.0
    limiter.allow('d')
    assert len(limiter) == 2


def test_http_requests_get_429_when_bucket_is_empty(clock):
    config = type('LimitedConfig', (TestConfig,), {
        'RATE_LIMIT_ENABLED': True,
        'RATE_LIMIT_POINTS': 2,
        'RATE_LIMIT_WINDOW_SEC': 60,
    })
    app = create_app(config)
    client = app.test_client()
    assert client.get('/').status_code == 200
    assert client.get('/').status_code == 200
    res = client.get('/')
    assert res.status_code == 429
    assert res.get_json() == {'error': 'Too many requests'}
