"""Per-client token bucket rate limiting for the HTTP API.

Each client key (the remote address) owns a bucket of ``capacity`` tokens
refilled continuously over ``window_sec``. A request spends one token;
an empty bucket yields HTTP 429.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict

from flask import jsonify, request


@dataclass
class TokenBucket:
    capacity: float
    refill_per_sec: float
    tokens: float
    updated_at: float

    def refill(self, now: float) -> None:
        elapsed = max(0.0, now - self.updated_at)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_per_sec)
        self.updated_at = now

    def consume(self, now: float, cost: float = 1.0) -> bool:
        self.refill(now)
        if self.tokens < cost:
            return False
        self.tokens -= cost
        return True


class RateLimiter:
    def __init__(self, capacity: int = 100, window_sec: float = 60.0, max_keys: int = 10000,
                 clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._lock = threading.Lock()
        self._buckets: Dict[str, TokenBucket] = {}
        self.configure(capacity, window_sec, max_keys)

    def configure(self, capacity: int, window_sec: float, max_keys: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        if window_sec <= 0:
            raise ValueError(f"window_sec must be > 0, got {window_sec}")
        self.capacity = float(capacity)
        self.window_sec = float(window_sec)
        self.max_keys = max_keys
        with self._lock:
            self._buckets.clear()

    def init_app(self, app) -> None:
        self.configure(
            int(app.config.get('RATE_LIMIT_POINTS', 100)),
            float(app.config.get('RATE_LIMIT_WINDOW_SEC', 60)),
            int(app.config.get('RATE_LIMIT_MAX_KEYS', 10000)),
        )
        if not app.config.get('RATE_LIMIT_ENABLED', True):
            return

        @app.before_request
        def _enforce_rate_limit():
            key = request.remote_addr or 'unknown'
            if self.allow(key):
                return None
            app.logger.warning(f"[rate-limit] client={key} path={request.path} rejected")
            return jsonify({'error': 'Too many requests'}), 429

    def allow(self, key: str) -> bool:
        now = self.clock()
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                if len(self._buckets) >= self.max_keys:
                    self._evict(now)
                bucket = TokenBucket(self.capacity, self.capacity / self.window_sec, self.capacity, now)
                self._buckets[key] = bucket
            return bucket.consume(now)

    def _evict(self, now: float) -> None:
        """Drop buckets that have refilled completely; then the oldest if still full."""
        for key in [k for k, b in self._buckets.items() if now - b.updated_at >= self.window_sec]:
            del self._buckets[key]
        while len(self._buckets) >= self.max_keys:
            oldest = min(self._buckets, key=lambda k: self._buckets[k].updated_at)
            del self._buckets[oldest]

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)
