import asyncio
import inspect
import json
import time
from typing import Dict, Optional, Callable, Any, Iterable
from datetime import datetime
from collections import defaultdict, deque
from enum import Enum
import redis

from explorer.obs.logger import log_event


class CircuitState(Enum):
    CLOSED = "closed"  # Normal operation
    OPEN = "open"      # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing if service recovered


class CircuitOpenError(Exception):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Circuit breaker {name} is OPEN")


class CircuitBreaker:
    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
        expected_exception: type = Exception
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception
        self.failure_count = 0
        self.last_failure_time = None
        self.state = CircuitState.CLOSED

    async def async_call(self, func: Callable, *args, **kwargs) -> Any:
        if self.state == CircuitState.OPEN:
            if self._should_attempt_reset():
                self.state = CircuitState.HALF_OPEN
            else:
                raise CircuitOpenError(self.name)

        try:
            result = await func(*args, **kwargs)
        except self.expected_exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    def reset(self) -> None:
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.last_failure_time = None

    def _on_success(self):
        self.failure_count = 0
        self.state = CircuitState.CLOSED

    def _on_failure(self):
        self.failure_count += 1
        self.last_failure_time = time.time()
        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            if self.state != CircuitState.OPEN:
                log_event("circuit_opened", level="WARNING", breaker=self.name, failures=self.failure_count)
            self.state = CircuitState.OPEN

    def _should_attempt_reset(self) -> bool:
        return bool(
            self.last_failure_time and
            time.time() - self.last_failure_time >= self.recovery_timeout
        )

    def get_state(self) -> Dict:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "last_failure": self.last_failure_time
        }


class RateLimiter:
    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis_client = redis_client
        self.local_cache = defaultdict(lambda: deque(maxlen=1000))

    def check_rate_limit(
        self,
        key: str,
        max_requests: int,
        window_seconds: int
    ) -> tuple[bool, Dict]:
        if self.redis_client:
            try:
                return self._check_redis_rate_limit(key, max_requests, window_seconds)
            except redis.RedisError as e:
                log_event("rate_limit_redis_error", level="WARNING", error=str(e))
        return self._check_local_rate_limit(key, max_requests, window_seconds)

    def _check_redis_rate_limit(
        self,
        key: str,
        max_requests: int,
        window_seconds: int
    ) -> tuple[bool, Dict]:
        redis_key = f"rate_limit:{key}"
        now = time.time()
        pipeline = self.redis_client.pipeline()

        # Sliding window: drop old entries, add this one, count, refresh expiry
        pipeline.zremrangebyscore(redis_key, 0, now - window_seconds)
        pipeline.zadd(redis_key, {str(now): now})
        pipeline.zcard(redis_key)
        pipeline.expire(redis_key, window_seconds + 1)

        results = pipeline.execute()
        request_count = results[2]

        allowed = request_count <= max_requests
        return allowed, {
            "allowed": allowed,
            "current": request_count,
            "limit": max_requests,
            "window_seconds": window_seconds,
            "retry_after": window_seconds if not allowed else None
        }

    def _check_local_rate_limit(
        self,
        key: str,
        max_requests: int,
        window_seconds: int
    ) -> tuple[bool, Dict]:
        now = time.time()
        request_times = self.local_cache[key]

        cutoff = now - window_seconds
        while request_times and request_times[0] < cutoff:
            request_times.popleft()

        if len(request_times) < max_requests:
            request_times.append(now)
            return True, {
                "allowed": True,
                "current": len(request_times),
                "limit": max_requests,
                "window_seconds": window_seconds
            }

        return False, {
            "allowed": False,
            "current": len(request_times),
            "limit": max_requests,
            "window_seconds": window_seconds,
            "retry_after": window_seconds
        }


class HealthChecker:
    def __init__(self):
        self.checks = {}

    def register_check(self, name: str, check_func: Callable):
        self.checks[name] = check_func

    async def run_checks(self) -> Dict:
        pairs = await asyncio.gather(
            *(self._run_single_check(name, func) for name, func in self.checks.items())
        )
        results = dict(pairs)
        all_healthy = all(r.get("status") == "healthy" for r in results.values())

        return {
            "status": "healthy" if all_healthy else "unhealthy",
            "checks": results,
            "timestamp": datetime.now().isoformat()
        }

    async def _run_single_check(self, name: str, check_func: Callable) -> tuple[str, Dict]:
        try:
            start = time.time()
            if inspect.iscoroutinefunction(check_func):
                result = await check_func()
            else:
                result = check_func()

            duration = time.time() - start
            return name, {
                "status": "healthy" if result else "unhealthy",
                "duration_ms": int(duration * 1000),
                "timestamp": datetime.now().isoformat()
            }
        except Exception as e:
            return name, {
                "status": "unhealthy",
                "error": str(e),
                "timestamp": datetime.now().isoformat()
            }


class ProductionMiddleware:
    """Per-IP rate limiting for the expensive search routes."""

    def __init__(
        self,
        app,
        redis_client: Optional[redis.Redis] = None,
        max_requests_per_minute: int = 100,
        limited_paths: Iterable[str] = ("/api/themes/destinations",),
    ):
        self.app = app
        self.rate_limiter = RateLimiter(redis_client)
        self.max_requests_per_minute = max_requests_per_minute
        self.limited_paths = set(limited_paths)

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http" and scope["path"] in self.limited_paths:
            client_ip = (scope.get("client") or ("unknown", None))[0]
            allowed, limit_info = self.rate_limiter.check_rate_limit(
                f"ip:{client_ip}",
                max_requests=self.max_requests_per_minute,
                window_seconds=60
            )
            if not allowed:
                log_event("rate_limited", level="WARNING", client_ip=client_ip, path=scope["path"])
                await self._send_rate_limit_response(send, limit_info)
                return

        await self.app(scope, receive, send)

    async def _send_rate_limit_response(self, send, limit_info: Dict):
        await send({
            "type": "http.response.start",
            "status": 429,
            "headers": [
                [b"content-type", b"application/json"],
                [b"retry-after", str(limit_info["retry_after"]).encode()],
            ],
        })
        await send({
            "type": "http.response.body",
            "body": json.dumps({"error": "Rate limit exceeded"}).encode(),
        })
