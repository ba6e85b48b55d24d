from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict

from fastapi import HTTPException


@dataclass
class _Bucket:
    tokens: float
    updated: float
    capacity: float


class SimpleRateLimiter:
    """
    Token bucket em memória, um balde por usuário.
    Protege as rotas que chamam o provedor de geração; cada processo tem o seu.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = Lock()
        self._buckets: Dict[str, _Bucket] = {}

    def check(self, key: str, rpm_limit: int) -> None:
        """Consome 1 token; o balde recarrega rpm_limit tokens por minuto."""
        if rpm_limit <= 0:
            return

        now = self._clock()
        capacity = float(rpm_limit)

        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or bucket.capacity != capacity:
                bucket = _Bucket(tokens=capacity, updated=now, capacity=capacity)
                self._buckets[key] = bucket

            refill = (now - bucket.updated) * capacity / 60.0
            bucket.tokens = min(capacity, bucket.tokens + refill)
            bucket.updated = now

            if bucket.tokens < 1.0:
                retry_after = (1.0 - bucket.tokens) * 60.0 / capacity
                raise HTTPException(
                    status_code=429,
                    detail={
                        "error_code": "RATE_LIMIT",
                        "message": "Muitas requisições de geração. Aguarde alguns segundos.",
                        "details": {"rpm_limit": rpm_limit, "retry_after_seconds": round(retry_after, 1)},
                    },
                )
            bucket.tokens -= 1.0

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()
